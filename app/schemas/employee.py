"""Schemas for employee records held in the document store."""

from pydantic import BaseModel, Field


class Address(BaseModel):
    street: str
    city: str
    state: str
    postal_code: str
    country: str


class ContactDetails(BaseModel):
    email: str
    phone_number: str


class JobDetails(BaseModel):
    job_title: str
    department: str
    hire_date: str
    employment_type: str
    salary: float
    currency: str


class WorkLocation(BaseModel):
    nearest_office: str
    is_remote: bool


class PerformanceReview(BaseModel):
    review_date: str
    rating: float
    comments: str


class Benefits(BaseModel):
    health_insurance: str
    retirement_plan: str
    paid_time_off: int


class EmergencyContact(BaseModel):
    name: str
    relationship: str
    phone_number: str


class EmployeeRecord(BaseModel):
    """Full employee record (identity, job, contact, skills, reviews, benefits)."""

    employee_id: str = Field(..., min_length=1, description="Stable id, e.g. E001.")
    first_name: str
    last_name: str
    date_of_birth: str
    address: Address
    contact_details: ContactDetails
    job_details: JobDetails
    work_location: WorkLocation
    reporting_manager: str | None = None
    skills: list[str] = Field(default_factory=list)
    performance_reviews: list[PerformanceReview] = Field(default_factory=list)
    benefits: Benefits
    emergency_contact: EmergencyContact
    notes: str = ""


# Fields the lookup tool hands to the model (plus a computed "department").
EMPLOYEE_PROJECTION: tuple[str, ...] = (
    "employee_id",
    "first_name",
    "last_name",
    "job_details",
    "work_location",
    "contact_details",
    "skills",
)


def build_employee_summary(record: EmployeeRecord) -> str:
    """Denormalized text used only to produce the search embedding."""
    job = f"{record.job_details.job_title} in {record.job_details.department}"
    skills = ", ".join(record.skills)
    reviews = " ".join(
        f"Rated {r.rating:g} on {r.review_date}: {r.comments}" for r in record.performance_reviews
    )
    basic = f"{record.first_name} {record.last_name}, born on {record.date_of_birth}"
    location = f"Works at {record.work_location.nearest_office}, Remote: {str(record.work_location.is_remote).lower()}"
    return f"{basic}. Job: {job}. Skills: {skills}. Reviews: {reviews}. Location: {location}. Notes: {record.notes}"


def project_employee(record: dict | None) -> dict | None:
    """Reduce a stored record to EMPLOYEE_PROJECTION and add `department`."""
    if record is None:
        return None
    out = {k: record[k] for k in EMPLOYEE_PROJECTION if k in record}
    out["department"] = (record.get("job_details") or {}).get("department")
    return out
