"""Generic API response schemas"""

from pydantic import BaseModel
from typing import Optional, Any, Dict, List, Union


class ErrorResponse(BaseModel):
    """Generic API error response"""
    success: bool = False
    error: str
    details: Optional[Union[Dict[str, Any], List[Dict[str, Any]]]] = None
    path: Optional[str] = None
    timestamp: str


class HealthResponse(BaseModel):
    """Health check response"""
    status: str
    version: str
    timestamp: str
    readiness: Dict[str, Any]
