"""
Exam Generator Prompt Templates

Contains structured prompts for:
- Exam paper generation (JSON, with a response schema)
- Picture-talk comic illustration
"""

from typing import Any


class GeneratorPrompts:
    """
    Prompt templates for generating exam content.

    Key principles:
    - Match the structure and difficulty of the real exam
    - Return strictly structured JSON
    - Keep illustrations simple enough to describe in a story
    """

    SYSTEM_CONTEXT = (
        "You are an expert English test creator for the Shanghai GaoKao. "
        "Create realistic, challenging content."
    )

    PAPER_STRUCTURE = """Generate a simulation paper for the Shanghai College Entrance Examination English Listening and Speaking Test.

Structure:
Part II Speaking:
- Section A: Reading Sentences (2 items)
- Section B: Reading Passage (1 item)
- Section C: Situational Questions (2 situations). Ensure each situation explicitly prompts for 2 questions, one of which implies a 'special' (Wh-) question.
- Section D: Picture Talk (1 item). Provide a description for a 4-panel comic.

Part III Listening and Speaking:
- Section A: Fast Response (4 items)
- Section B: Listening Passage (1 passage, 2 questions)

Ensure difficulty matches the Shanghai GaoKao standards."""

    def generate_paper_prompt(self) -> str:
        """Generate the user prompt for a new paper."""
        return self.PAPER_STRUCTURE

    def paper_schema(self) -> dict[str, Any]:
        """JSON response schema for the paper (Gemini OpenAPI subset)."""
        string_list = {"type": "ARRAY", "items": {"type": "STRING"}}
        return {
            "type": "OBJECT",
            "properties": {
                "id": {"type": "STRING"},
                "speakingA": {
                    "type": "OBJECT",
                    "properties": {
                        "items": {
                            **string_list,
                            "description": (
                                "2 distinct sentences for reading aloud (Shanghai GaoKao level). "
                                "The first sentence is shorter and the second is longer."
                            ),
                        },
                    },
                    "required": ["items"],
                },
                "speakingB": {
                    "type": "OBJECT",
                    "properties": {
                        "text": {
                            "type": "STRING",
                            "description": "A reading passage of about 120 words. Academic or narrative style.",
                        },
                    },
                    "required": ["text"],
                },
                "speakingC": {
                    "type": "OBJECT",
                    "properties": {
                        "items": {
                            "type": "ARRAY",
                            "items": {
                                "type": "OBJECT",
                                "properties": {
                                    "situation": {
                                        "type": "STRING",
                                        "description": (
                                            "A situation description (e.g., 'Your friend is sick...'). "
                                            "Explicitly state that the student needs to ask two questions, "
                                            "and at least one must be a special question (Wh-question)."
                                        ),
                                    },
                                },
                                "required": ["situation"],
                            },
                            "description": "Exactly 2 distinct situations.",
                        },
                    },
                    "required": ["items"],
                },
                "speakingD": {
                    "type": "OBJECT",
                    "properties": {
                        "imageDescription": {
                            "type": "STRING",
                            "description": (
                                "Visual description of a 4-panel comic strip story involving students "
                                "or daily life. Explicitly mention that the main character "
                                "(e.g., Xiao Wang) should be labeled or easily identifiable."
                            ),
                        },
                        "givenSentence": {
                            "type": "STRING",
                            "description": "The mandatory starting sentence for the story.",
                        },
                    },
                    "required": ["imageDescription", "givenSentence"],
                },
                "listeningA": {
                    "type": "OBJECT",
                    "properties": {
                        "questions": {
                            **string_list,
                            "description": "4 short conversational sentences/questions for fast response.",
                        },
                    },
                    "required": ["questions"],
                },
                "listeningB": {
                    "type": "OBJECT",
                    "properties": {
                        "passage": {
                            "type": "STRING",
                            "description": "A narrative or expository passage (~150 words) for listening comprehension.",
                        },
                        "questions": {
                            "type": "ARRAY",
                            "items": {
                                "type": "OBJECT",
                                "properties": {
                                    "question": {"type": "STRING"},
                                    "answerKey": {
                                        "type": "STRING",
                                        "description": (
                                            "The correct factual answer or key points expected "
                                            "for the opinion question."
                                        ),
                                    },
                                    "type": {"type": "STRING", "enum": ["fact", "opinion"]},
                                    "prepTime": {"type": "NUMBER"},
                                    "recordTime": {"type": "NUMBER"},
                                },
                                "required": ["question", "answerKey", "type", "prepTime", "recordTime"],
                            },
                            "description": (
                                "Exactly 2 questions. Q1 is factual (30s prep/30s answer). "
                                "Q2 is opinion/comment (60s prep/60s answer)."
                            ),
                        },
                    },
                    "required": ["passage", "questions"],
                },
            },
            "required": ["speakingA", "speakingB", "speakingC", "speakingD", "listeningA", "listeningB"],
        }

    def generate_image_prompt(self, description: str) -> str:
        """Generate the prompt for the picture-talk illustration."""
        return (
            "Create a simple black and white line-drawing style 4-panel comic strip based on "
            f"this description: {description}. The image should look like a test booklet "
            "illustration. The panels should be arranged in a grid. IMPORTANT: Include the "
            "character's name (e.g. 'Xiao Wang') written clearly in the drawing near the character."
        )
