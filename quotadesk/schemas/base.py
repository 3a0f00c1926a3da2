from pydantic import BaseModel, ConfigDict


class DomainRecord(BaseModel):
    """Immutable store record. Replace with `model_copy(update=...)`."""

    model_config = ConfigDict(frozen=True, from_attributes=True)
