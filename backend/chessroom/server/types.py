from pydantic import BaseModel, ConfigDict, Field


class ClientIdentity(BaseModel):
    """Identity a client may present in the ``/ws`` query string.

    ``client_id`` is the identity the client was given before (its previous
    connection id) so a dropped player can be matched back to its seat.
    """

    model_config = ConfigDict(extra="ignore")

    client_id: str | None = Field(default=None, min_length=1, max_length=100, pattern=r"^[a-zA-Z0-9_-]+$")
    name: str | None = Field(default=None, min_length=1, max_length=50)
