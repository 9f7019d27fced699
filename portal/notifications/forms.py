# FILE: portal/notifications/forms.py
from flask_wtf import FlaskForm
from flask_wtf.file import FileField
from wtforms import IntegerField, StringField, TextAreaField
from wtforms.validators import DataRequired, Length, Optional

class CreateNotificationForm(FlaskForm):
    type = StringField('Type', validators=[DataRequired('Invalid notification type.')])
    title = StringField('Title', validators=[DataRequired(), Length(min=3, max=200)])
    message = TextAreaField('Message', validators=[DataRequired(), Length(min=5)])
    module_id = IntegerField('Module', validators=[Optional()])
    audience = StringField('Audience', validators=[Optional()])
    # type and extension are checked when the notification is published
    image = FileField('Image')
