"""Asset pipeline: image analysis, prompt generation, validation and synthesis."""
