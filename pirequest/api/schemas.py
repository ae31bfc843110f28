import re
from datetime import date, datetime, timezone
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import BaseModel, EmailStr, StrictBool, StringConstraints, field_validator

RequestType = Literal["report", "delete"]
DeliveryMethod = Literal["email", "mail", "secure-portal"]

# North-American number, optionally +1, loose separators
PHONE_PATTERN = r"^\+?1?[-.\s]?\(?[0-9]{3}\)?[-.\s]?[0-9]{3}[-.\s]?[0-9]{4}$"
SSN_PATTERN = r"^\d{3}-?\d{2}-?\d{4}$"
MFA_CODE_PATTERN = r"^\d{6}$"
UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

US_STATES = {
    "AL": "Alabama", "AK": "Alaska", "AZ": "Arizona", "AR": "Arkansas", "CA": "California",
    "CO": "Colorado", "CT": "Connecticut", "DE": "Delaware", "FL": "Florida", "GA": "Georgia",
    "HI": "Hawaii", "ID": "Idaho", "IL": "Illinois", "IN": "Indiana", "IA": "Iowa",
    "KS": "Kansas", "KY": "Kentucky", "LA": "Louisiana", "ME": "Maine", "MD": "Maryland",
    "MA": "Massachusetts", "MI": "Michigan", "MN": "Minnesota", "MS": "Mississippi", "MO": "Missouri",
    "MT": "Montana", "NE": "Nebraska", "NV": "Nevada", "NH": "New Hampshire", "NJ": "New Jersey",
    "NM": "New Mexico", "NY": "New York", "NC": "North Carolina", "ND": "North Dakota", "OH": "Ohio",
    "OK": "Oklahoma", "OR": "Oregon", "PA": "Pennsylvania", "RI": "Rhode Island", "SC": "South Carolina",
    "SD": "South Dakota", "TN": "Tennessee", "TX": "Texas", "UT": "Utah", "VT": "Vermont",
    "VA": "Virginia", "WA": "Washington", "WV": "West Virginia", "WI": "Wisconsin", "WY": "Wyoming",
    "DC": "District of Columbia", "PR": "Puerto Rico", "VI": "U.S. Virgin Islands",
    "AS": "American Samoa", "GU": "Guam", "MP": "Northern Mariana Islands",
}
_STATE_LOOKUP = {**{k.lower(): k for k in US_STATES}, **{v.lower(): k for k, v in US_STATES.items()}}

Name = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
Phone = Annotated[str, StringConstraints(strip_whitespace=True, pattern=PHONE_PATTERN)]
SessionId = Annotated[str, StringConstraints(strip_whitespace=True, pattern=UUID_PATTERN)]


class PersonalInfo(BaseModel):
    firstName: Name
    lastName: Name
    address: Annotated[str, StringConstraints(strip_whitespace=True, min_length=5, max_length=200)]
    state: Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]
    email: EmailStr
    dateOfBirth: date
    ssn: Annotated[str, StringConstraints(strip_whitespace=True, pattern=SSN_PATTERN)]

    @field_validator("state")
    @classmethod
    def _recognized_state(cls, v: str) -> str:
        if v.lower() not in _STATE_LOOKUP:
            raise ValueError("must be a US state or territory")
        return v

    @field_validator("dateOfBirth", mode="before")
    @classmethod
    def _iso_date_only(cls, v: Any) -> Any:
        # Lax date parsing would take 0 or "0" as the Unix epoch
        if isinstance(v, date) or (isinstance(v, str) and _ISO_DATE_RE.match(v.strip())):
            return v.strip() if isinstance(v, str) else v
        raise ValueError("must be an ISO date (YYYY-MM-DD)")

    @field_validator("dateOfBirth")
    @classmethod
    def _not_in_future(cls, v: date) -> date:
        if v > datetime.now(timezone.utc).date():
            raise ValueError("must not be in the future")
        return v


class MfaCodeRequest(BaseModel):
    personalInfo: PersonalInfo
    mobileNumber: Phone
    # Strict: only a JSON true passes the human-verification gate
    captchaVerified: Optional[StrictBool] = None


class MfaVerifyRequest(BaseModel):
    mobileNumber: Phone
    mfaCode: Annotated[str, StringConstraints(strip_whitespace=True, pattern=MFA_CODE_PATTERN)]
    sessionId: SessionId


class SubmitRequest(BaseModel):
    personalInfo: PersonalInfo
    mobileNumber: Phone
    requestType: RequestType
    deliveryMethod: DeliveryMethod
    sessionId: SessionId


class ApiResponse(BaseModel):
    success: bool
    message: str
    data: Optional[Dict[str, Any]] = None
    details: Optional[List[str]] = None


class MfaIssued(BaseModel):
    sessionId: str
    phoneNumber: str
    expiresIn: int


class MfaVerified(BaseModel):
    sessionId: str
    verified: bool = True


class RequestSubmitted(BaseModel):
    requestId: str
    status: str = "submitted"
    estimatedProcessingTime: str
    submittedAt: str


class RequestStatus(BaseModel):
    requestId: str
    status: str
    submittedAt: str
    estimatedCompletionDate: str
    lastUpdated: str
