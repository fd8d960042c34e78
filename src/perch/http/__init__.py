"""HTTP primitives the dispatcher hands to extension handlers."""

from perch.http.request import Request
from perch.http.response import Response

__all__ = ["Request", "Response"]
