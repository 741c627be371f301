from typing import Any, Dict, List, Union

from pydantic import BaseModel

from app.services.sections import Section, get_section


class Progress(BaseModel):
    missing_fields: List[str]
    completed_count: int
    total_required: int
    can_submit: bool

    class Config:
        frozen = True

    @property
    def percentage(self) -> int:
        if self.total_required == 0:
            return 100
        return round(self.completed_count / self.total_required * 100)


def evaluate(section: Union[str, Section], state: Dict[str, Any]) -> Progress:
    """
    Required-field completion for one section's form state.

    Pure: reads `state`, never mutates it, and the same snapshot always gives
    the same result. Each active required field is either present or missing,
    there is no partial credit.
    """
    if isinstance(section, str):
        section = get_section(section)

    required = section.required_fields(state)
    missing = [form_field.label for form_field in required if not form_field.is_present(state.get(form_field.name))]

    return Progress(
        missing_fields=missing,
        completed_count=len(required) - len(missing),
        total_required=len(required),
        can_submit=not missing,
    )
