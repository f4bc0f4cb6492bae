from pydantic import BaseModel, Field

from solarpunklist.models import CAMEL_CONFIG


class SubmitCommunityRequest(BaseModel):
    url: str = Field(..., min_length=1, max_length=2048)


class SubmitCommunityResponse(BaseModel):
    model_config = CAMEL_CONFIG

    success: bool = True
    slug: str
    name: str


class SubscribeRequest(BaseModel):
    email: str = Field(..., min_length=3, max_length=320)


class SubscribeResponse(BaseModel):
    success: bool = True
    email: str


class VisitRequest(BaseModel):
    path: str = Field(default="/", max_length=500)


class StatsResponse(BaseModel):
    model_config = CAMEL_CONFIG

    total_communities: int
