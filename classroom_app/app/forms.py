from __future__ import annotations
from flask_wtf import FlaskForm
from wtforms import StringField
from wtforms.validators import DataRequired, Length, Regexp


class AcceptInvitationForm(FlaskForm):
    """Carries only the CSRF token for the accept button."""


class JoinRosterForm(FlaskForm):
    roster_entry_id = StringField(
        "roster_entry_id",
        validators=[
            DataRequired(),
            Length(max=20),
            Regexp(r"^\d+$", message="Pick your name from the roster."),
        ],
    )
