from pydantic import BaseModel, ConfigDict, Field


# Action Input Models
class ClickElementAction(BaseModel):
	index: int = Field(ge=1)


class InputTextAction(BaseModel):
	index: int = Field(ge=1)
	text: str


class SelectOptionAction(BaseModel):
	"""Select an option of a <select> element by its value or visible text"""

	index: int = Field(ge=1)
	value: str = Field(description='Option value or visible option text')


class SubmitFormAction(BaseModel):
	"""Submit the form that contains the element (or the form itself)"""

	index: int = Field(ge=1)


class ActionResult(BaseModel):
	"""Outcome of one action; `error` is set instead of raising for page-level failures"""

	model_config = ConfigDict(extra='forbid')

	success: bool = True
	extracted_content: str | None = None
	error: str | None = None
	new_element_count: int = 0
