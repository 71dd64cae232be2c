"""Pydantic models for API request bodies."""

from datetime import date

from pydantic import BaseModel, Field


class ImageFilePayload(BaseModel):
    """Browser-encoded image."""

    name: str
    type: str
    data: str


class CreatePaymentRequest(BaseModel):
    email: str
    caption: str
    image_file: ImageFilePayload = Field(alias="imageFile")


class ConfirmPaymentRequest(BaseModel):
    session_id: str


class ListUploadsRequest(BaseModel):
    limit: int | None = None
    search: str | None = None
    sort_by: str = Field(default="date", alias="sortBy")
    sort_order: str = Field(default="desc", alias="sortOrder")


class VoteRequest(BaseModel):
    upload_id: str = Field(alias="uploadId")
    vote_type: str = Field(default="up", alias="voteType")


class PredictionRequest(BaseModel):
    predicted_price: int = Field(alias="predictedPrice")
    week_ending: date = Field(alias="weekEnding")


class AdminLoginRequest(BaseModel):
    password: str


class AdminTokenRequest(BaseModel):
    """Body for admin calls that carry only a session token."""

    session_token: str | None = Field(default=None, alias="sessionToken")


class AdminDeleteUploadRequest(AdminTokenRequest):
    upload_id: str = Field(alias="uploadId")


class AdminUpdatePricingRequest(AdminTokenRequest):
    new_price: int = Field(alias="newPrice")


class AdminPaymentStateRequest(AdminTokenRequest):
    session_id: str = Field(alias="sessionId")
