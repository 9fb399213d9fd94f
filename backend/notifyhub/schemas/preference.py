"""Pydantic schemas for notification preferences."""

from pydantic import BaseModel, Field

from notifyhub.models.notification import NotificationType


class ChannelFlags(BaseModel):
    in_app: bool = Field(True, alias="inApp")
    email: bool = True
    push: bool = True
    sms: bool = False

    model_config = {"populate_by_name": True}


class TypePreference(BaseModel):
    enabled: bool = True
    channels: ChannelFlags = Field(default_factory=ChannelFlags)


class PreferenceResponse(BaseModel):
    user_id: str
    channels: ChannelFlags
    types: dict[NotificationType, TypePreference]


class ChannelFlagsUpdate(BaseModel):
    in_app: bool | None = Field(None, alias="inApp")
    email: bool | None = None
    push: bool | None = None
    sms: bool | None = None

    model_config = {"populate_by_name": True}

    def as_channel_map(self) -> dict[str, bool]:
        return {
            key: value
            for key, value in self.model_dump(by_alias=True).items()
            if value is not None
        }


class TypePreferenceUpdate(BaseModel):
    enabled: bool | None = None
    channels: ChannelFlagsUpdate | None = None


class PreferenceUpdate(BaseModel):
    channels: ChannelFlagsUpdate | None = None
    types: dict[NotificationType, TypePreferenceUpdate] | None = None
