from pydantic import BaseModel, ConfigDict, field_validator


class Base(BaseModel):
    model_config = ConfigDict(
        from_attributes=True, use_enum_values=True, extra="forbid"
    )


class FrozenBase(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True, extra="forbid")


class SuccessResponse(Base):
    success: bool


class StripIdentifierMixin(BaseModel):
    @field_validator(
        "subject", "newsletter_id", "user_id", mode="before", check_fields=False
    )
    @classmethod
    def _strip_identifier(cls, v: object) -> object:
        if isinstance(v, str):
            return v.strip()
        return v


class VerbatimIdentifierMixin(BaseModel):
    """Identifiers are kept exactly as given; blank or padded ones are rejected."""

    @field_validator(
        "subject", "newsletter_id", "user_id", "token_id", check_fields=False
    )
    @classmethod
    def _reject_padded_identifier(cls, v: object) -> object:
        if isinstance(v, str) and (not v.strip() or v != v.strip()):
            raise ValueError("identifier must not be blank or padded")
        return v
