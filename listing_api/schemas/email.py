from pydantic import BaseModel, Field


class InterestEmailRequest(BaseModel):
    property: str = Field(..., min_length=1, description="Name of the listing")
    type: str = Field(..., description="Contact channel, e.g. phone or email")
    contact: str = Field(..., min_length=1)
    description: str = ""


class EmailResponse(BaseModel):
    status: str = "OK"
