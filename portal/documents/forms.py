# FILE: portal/documents/forms.py
from flask_wtf import FlaskForm
from flask_wtf.file import FileField, FileRequired
from wtforms import IntegerField, StringField
from wtforms.validators import DataRequired, Length, Optional

class UploadDocumentForm(FlaskForm):
    title = StringField('Title', validators=[DataRequired(), Length(max=255)])
    module_id = IntegerField('Module', validators=[Optional()])
    file = FileField('File', validators=[FileRequired('No file provided.')])
