from typing import Any, Dict, Optional

from fastapi import HTTPException


class RelayError(HTTPException):
    """
    Error raised by the relays and the API layer.

    ``detail`` always has the OpenAI error envelope shape
    ``{"error": {"message", "type", "param", "code"}}`` so it can be written
    to the client as-is.
    """

    def __init__(self, status_code: int, detail: Dict[str, Any], original_exception: Optional[Exception] = None):
        super().__init__(status_code=status_code, detail=detail)
        self.original_exception = original_exception

    @property
    def error(self) -> Dict[str, Any]:
        return self.detail.get("error", {})

    @property
    def error_code(self) -> Optional[str]:
        return self.error.get("code")

    @property
    def message(self) -> str:
        return self.error.get("message", "")
