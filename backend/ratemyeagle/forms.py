"""Form checks done on the client before anything is sent.

Each ``validate_*`` function returns the first problem as a user-facing
message, or None when the form is acceptable. The limits here (three tags,
350-character reviews, institutional email) are not enforced by storage.
"""

from typing import Optional

from pydantic import BaseModel, Field

from ratemyeagle.config import get_settings

MAX_TAGS = 3
MAX_REVIEW_LENGTH = 350
MIN_PASSWORD_LENGTH = 8

AVAILABLE_TAGS = (
    "Tough Grader", "Get Ready To Read", "Participation Matters", "Extra Credit",
    "Group Projects", "Amazing Lectures", "Clear Grading Criteria", "Gives Good Feedback",
    "Inspirational", "Lots Of Homework", "Hilarious", "Beware Of Pop Quizzes",
    "So Many Papers", "Caring", "Respected", "Lecture Heavy", "Test Heavy",
    "Graded By Few Things", "Accessible Outside Class", "Online Savvy",
)

GRADES = (
    "A+", "A", "A-", "B+", "B", "B-", "C+", "C", "C-", "D+", "D", "D-", "F",
    "Pass", "No Pass", "Incomplete", "Withdraw", "Audit", "Rather not say",
)


def _domain(domain: Optional[str]) -> str:
    return (domain or get_settings().allowed_email_domain).lower()


def is_institutional_email(email: str, domain: Optional[str] = None) -> bool:
    return email.strip().lower().endswith("@" + _domain(domain))


def email_error(email: str, domain: Optional[str] = None) -> Optional[str]:
    if not email or not email.strip():
        return "Email is required"
    if not is_institutional_email(email, domain):
        return f"Only student emails (@{_domain(domain)}) are allowed"
    return None


class SignUpForm(BaseModel):
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    student_id: str = ""
    graduation: str = ""
    major: str = ""
    password: str = ""
    confirm_password: str = ""
    agree: bool = False

    def metadata(self) -> dict:
        """Profile fields stored with the account in the auth service."""
        return {
            "first_name": self.first_name.strip(),
            "last_name": self.last_name.strip(),
            "student_id": self.student_id,
            "graduation": self.graduation,
            "major": self.major,
        }


def validate_signup(form: SignUpForm, domain: Optional[str] = None) -> Optional[str]:
    if not form.first_name.strip():
        return "First name is required"
    if not form.last_name.strip():
        return "Last name is required"
    error = email_error(form.email, domain)
    if error:
        return error
    if not form.password:
        return "Password is required"
    if len(form.password) < MIN_PASSWORD_LENGTH:
        return f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
    if form.password != form.confirm_password:
        return "Passwords do not match"
    if not form.agree:
        return "You must agree to the terms of service"
    return None


def validate_signin(email: str, password: str, domain: Optional[str] = None) -> Optional[str]:
    error = email_error(email, domain)
    if error:
        return error
    if not password:
        return "Password is required"
    return None


class RatingForm(BaseModel):
    course_code: str = ""
    is_online_course: bool = False
    overall_rating: int = 0
    difficulty: int = 0
    would_take_again: str = ""
    taken_for_credit: str = ""
    used_textbooks: str = ""
    attendance_mandatory: str = ""
    grade_received: str = ""
    selected_tags: list[str] = Field(default_factory=list)
    review: str = ""

    def toggle_tag(self, tag: str) -> bool:
        """Select or deselect ``tag``; selecting beyond MAX_TAGS is ignored.

        Returns True when the selection changed.
        """
        if tag in self.selected_tags:
            self.selected_tags.remove(tag)
            return True
        if len(self.selected_tags) >= MAX_TAGS:
            return False
        self.selected_tags.append(tag)
        return True

    def payload(self) -> dict:
        """Request body for POST /professors/{id}/ratings."""
        return {
            "courseCode": self.course_code,
            "isOnlineCourse": self.is_online_course,
            "overallRating": self.overall_rating,
            "difficulty": self.difficulty,
            "wouldTakeAgain": self.would_take_again,
            "takenForCredit": self.taken_for_credit,
            "usedTextbooks": self.used_textbooks,
            "attendanceMandatory": self.attendance_mandatory,
            "gradeReceived": self.grade_received,
            "selectedTags": list(self.selected_tags),
            "review": self.review,
        }


def validate_rating_form(form: RatingForm) -> Optional[str]:
    if not form.course_code:
        return "Please select a course code"
    if form.overall_rating == 0:
        return "Please rate your professor"
    if form.difficulty == 0:
        return "Please rate the difficulty"
    if not form.would_take_again:
        return "Please indicate if you would take this professor again"
    if not form.review.strip():
        return "Please write a review"
    if len(form.review) > MAX_REVIEW_LENGTH:
        return f"Review must be {MAX_REVIEW_LENGTH} characters or less"
    if len(form.selected_tags) > MAX_TAGS:
        return f"Select up to {MAX_TAGS} tags"
    return None
