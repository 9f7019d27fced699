# FILE: portal/repository/forms.py
from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, FileField
from wtforms import StringField
from wtforms.validators import DataRequired, Length

class ExternalRepositoryForm(FlaskForm):
    label = StringField('Label', validators=[DataRequired(), Length(max=150)])
    link_url = StringField('Link', validators=[DataRequired(), Length(max=500)])
    image = FileField('Image', validators=[
        FileAllowed(['jpg', 'jpeg', 'png', 'gif', 'webp'], 'Only image uploads are allowed.')
    ])
