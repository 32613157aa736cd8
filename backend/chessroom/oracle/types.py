from pydantic import BaseModel, ConfigDict, Field

SQUARE_PATTERN = r"^[a-h][1-8]$"
PROMOTION_PATTERN = r"^[qrbn]$"


class MoveSpec(BaseModel):
    """A move as submitted by a client: origin square, target square, optional promotion piece.

    Field names mirror the wire keys (``from``/``to``); ``from`` is a Python
    keyword, hence the aliases.
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    from_square: str = Field(alias="from", pattern=SQUARE_PATTERN)
    to_square: str = Field(alias="to", pattern=SQUARE_PATTERN)
    promotion: str | None = Field(default=None, pattern=PROMOTION_PATTERN)

    @property
    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    def to_wire(self) -> dict[str, str | None]:
        return self.model_dump(by_alias=True)
