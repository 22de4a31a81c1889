from pydantic import BaseModel

from estateflow.schemas.agent import AgentResponse


class LoginRequest(BaseModel):
    email: str


class LoginResponse(BaseModel):
    message: str


class CallbackRequest(BaseModel):
    token: str


class TokenResponse(BaseModel):
    token: str
    token_type: str = "bearer"
    agent: AgentResponse
