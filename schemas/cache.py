# schemas/cache.py
from pydantic import BaseModel, Field
from typing import Dict
import base64


class CachedResponse(BaseModel):
    status_code: int
    content_type: str = ""
    headers: Dict[str, str] = Field(default_factory=dict)
    body: str = ""  # base64 of the raw response bytes

    @classmethod
    def capture(cls, status_code: int, content_type: str, headers: Dict[str, str], body: bytes) -> "CachedResponse":
        return cls(
            status_code=status_code,
            content_type=content_type or "",
            headers=headers,
            body=base64.b64encode(body).decode("ascii"),
        )

    @property
    def body_bytes(self) -> bytes:
        return base64.b64decode(self.body)
