from flask_wtf import FlaskForm
from wtforms import SelectField, StringField, SubmitField, TextAreaField
from wtforms.validators import InputRequired, Length

from ..documents.entities import AssetType


class ProjectForm(FlaskForm):
    title = StringField("Project title", validators=[InputRequired(), Length(max=150)])
    submit = SubmitField("New project")


class ChapterForm(FlaskForm):
    title = StringField("Chapter title", validators=[InputRequired(), Length(max=150)])
    submit = SubmitField("Add chapter")


class PageForm(FlaskForm):
    title = StringField("Page title", validators=[InputRequired(), Length(max=150)])
    submit = SubmitField("Add page")


class AssetForm(FlaskForm):
    name = StringField("Name", validators=[InputRequired(), Length(max=120)])
    type = SelectField(
        "Type",
        choices=[(asset_type.value, asset_type.value.title()) for asset_type in AssetType],
        default=AssetType.CHARACTER.value,
    )
    description = TextAreaField("Description", validators=[Length(max=2000)])
    submit = SubmitField("Add asset")
