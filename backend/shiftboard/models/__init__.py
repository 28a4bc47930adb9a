from shiftboard.models.lead import Lead, ContactSubmission
from shiftboard.models.intake import IntakeToken, IntakeSubmission
from shiftboard.models.project import Client, Project, Task
from shiftboard.models.deliverable import Deliverable, Feedback
from shiftboard.models.user import User, Session, SecurityLog
from shiftboard.models.agent import Agent

__all__ = [
    "Lead", "ContactSubmission", "IntakeToken", "IntakeSubmission",
    "Client", "Project", "Task", "Deliverable", "Feedback",
    "User", "Session", "SecurityLog", "Agent",
]
