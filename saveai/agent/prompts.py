"""Prompt templates used by the product analysis providers."""


ANALYSIS_SYSTEM_PROMPT = (
    "You are a product analysis expert. Provide honest, helpful analysis in JSON format only."
)

ANALYSIS_USER_PROMPT = """\
Analyze this product and provide a structured response:

Product: {name}
Price: ${price}
Description: {description}

Provide:
1. A brief summary (2-3 sentences)
2. 3-5 pros
3. 3-5 cons
4. 2-3 suggested alternative products with reasons

Format as JSON with keys: summary, pros (array), cons (array), suggestedAlternatives (array of {{name, reason}})"""


def build_analysis_prompt(name: str, price: float, description: str | None) -> str:
    return ANALYSIS_USER_PROMPT.format(name=name, price=f"{price:.2f}", description=description or "N/A")
