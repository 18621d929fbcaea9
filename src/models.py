from pydantic import BaseModel


class PasteRecord(BaseModel):
    ordinal: int
    identifier: str
    size: int
