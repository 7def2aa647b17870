from typing import List, Optional

from pydantic import BaseModel, Field


class EncryptRequest(BaseModel):
    plaintext: str


class EncryptResponse(BaseModel):
    ciphertext: str


class SolveRequest(BaseModel):
    ciphertext: str
    max_nodes: Optional[int] = Field(default=None, ge=1)


class SolveResponse(BaseModel):
    ciphertext: str
    solutions: List[str]
    count: int
