from typing import List, Literal

from pydantic import BaseModel, Field, field_validator


class GuessPaperRequest(BaseModel):
    subject: str = Field(..., min_length=1, description="Subject of the guess paper")
    difficulty: Literal["easy", "medium", "hard"] = Field(default="medium")


class GuessPaperSection(BaseModel):
    title: str
    questions: List[str] = Field(default_factory=list)
    answers: List[str] = Field(default_factory=list)


class GuessPaperTemplate(BaseModel):
    title: str = Field(..., min_length=1)
    introduction: str = ""
    sections: List[GuessPaperSection] = Field(default_factory=list)

    @field_validator("title")
    def validate_title(cls, v):
        if not v.strip():
            raise ValueError("Guess paper title is required")
        return v
