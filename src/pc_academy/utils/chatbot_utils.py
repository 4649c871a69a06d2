import json
import logging

import pydantic
import requests

from pc_academy.models.assistant_models import ComponentQueryResponseModel, ConfigAnalysisResponseModel
from pc_academy.models.curriculum_models import QuizQuestion

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)

CHATBOT_MODEL = "gemini-2.0-flash"

FALLBACK_EXPLANATION = "Sorry, the AI assistant cannot explain this question right now. Please try again later."
FALLBACK_ANSWER = "Sorry, the AI assistant cannot answer your question right now. Please try again later."


class ChatBotApiError(Exception):
    def __init__(self, msg: str, status_code: int = 503) -> None:
        super().__init__(msg)
        self.status_code = status_code


_QUIZ_EXPLANATION_PROMPT_TEMPLATE = """
You are a PC building expert and an educator. For the multiple-choice question below, give a clear,
easy-to-follow explanation of why the correct answer is correct. Where it helps, briefly say why the
other options are wrong. Your explanation should help the learner understand the underlying concept.

### Question

{question_text}

### Options

{options}

### Correct Answer

The correct option ID is: {correct_option_id}

### Instructions

Respond in strict JSON with a single key (camelCase):

```
{{
    "explanation": "Your explanation here"
}}
```

IMPORTANT: Respond ONLY with the valid JSON object as described. Do not include
any other text, greetings, or conversational filler before or after the JSON.
"""


_COMPONENT_QUERY_PROMPT_TEMPLATE = """
You are a helpful AI assistant for students learning about PC building. Answer the student's
question about PC components, compatibility, or troubleshooting. Keep the answer concise and
at the level of a beginner builder.

### Student's Question

{query}

### Instructions

Respond in strict JSON with a single key (camelCase):

```
{{
    "answer": "Your answer here"
}}
```

IMPORTANT: Respond ONLY with the valid JSON object as described. Do not include
any other text, greetings, or conversational filler before or after the JSON.
"""


_CONFIG_ANALYSIS_PROMPT_TEMPLATE = """
You are an AI expert in analysing PC hardware configurations. Read the user's text carefully.

### Task

1. First decide whether the text is about PC components, a PC configuration, or related technology.
   - If it is not, set "isPcRelated" to false and put a short, polite message in "analysis" asking
     the user to provide a list of PC components or a related question.
   - If it is, set "isPcRelated" to true and continue.
2. If "isPcRelated" is true, analyse the configuration:
   - Check for compatibility problems between components (CPU socket vs. motherboard, RAM type vs.
     motherboard, PSU wattage vs. component power draw).
   - Identify likely performance bottlenecks (e.g. a high-end GPU paired with a low-end CPU, or too
     little memory for heavy workloads).
   - Where useful, suggest improvements or alternative components, considering value for money.
   - If the configuration is well balanced, say so.
   - Keep the analysis clear and concise; use bullet points for suggestions.

### User's Text

```
{pc_config}
```

### Instructions

Respond in strict JSON with the following keys (camelCase):

```
{{
    "isPcRelated": true,
    "analysis": "Your analysis here"
}}
```

IMPORTANT: Respond ONLY with the valid JSON object as described. Do not include
any other text, greetings, or conversational filler before or after the JSON.
"""


class ChatBotWrapper:
    def __init__(self) -> None:
        pass

    def _call_google_generative_api(
        self,
        *,
        chatbot_api_key: str,
        prompt: str,
        timeout_seconds: int = 45,
        max_output_tokens: int = 800,
    ) -> dict:
        """
        POSTs a prompt to Google's Generative AI content generation and parses the JSON
        object in the reply.
        """
        api_endpoint = f"https://generativelanguage.googleapis.com/v1beta/models/{CHATBOT_MODEL}:generateContent?key={chatbot_api_key}"
        request_payload = {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": max_output_tokens},
        }

        try:
            response = requests.post(api_endpoint, json=request_payload, timeout=timeout_seconds)
            response.raise_for_status()
            api_response_data = response.json()
        except requests.exceptions.Timeout:
            _LOGGER.error("Google GenAI API request timed out.")
            raise ChatBotApiError("AI service request timed out.", 504)
        except requests.exceptions.RequestException as e:
            _LOGGER.error(f"Google GenAI API request failed: {e}")
            if e.response is not None:
                _LOGGER.error(f"GenAI API Error Response: {e.response.text}")
            raise ChatBotApiError(f"Failed to communicate with AI service: {str(e)}")
        except ValueError as e:
            _LOGGER.error(f"GenAI API returned a non-JSON body: {e}", exc_info=True)
            raise ChatBotApiError("AI service returned a non-JSON body.")

        candidates = api_response_data.get("candidates") if isinstance(api_response_data, dict) else None
        if not isinstance(candidates, list) or len(candidates) == 0 or not candidates[0].get("content"):
            _LOGGER.error("Invalid or missing candidates/content in GenAI API response: %s", api_response_data)
            raise ChatBotApiError("AI service returned an unexpected response structure (no candidates/content).")

        parts = candidates[0]["content"].get("parts")
        if not isinstance(parts, list) or len(parts) == 0 or not parts[0].get("text"):
            _LOGGER.error("Invalid or missing parts/text in GenAI API response: %s", api_response_data)
            raise ChatBotApiError("AI service returned an unexpected response structure (no parts/text).")

        generated_text = str(parts[0]["text"])
        _LOGGER.info(f"Raw GenAI response text (first 500 chars): {generated_text[:500]}")

        try:
            json_start = generated_text.find("{")
            json_end = generated_text.rfind("}")
            if json_start != -1 and json_end != -1 and json_end > json_start:
                generated = json.loads(generated_text[json_start : json_end + 1])
            else:
                generated = json.loads(generated_text)
        except json.JSONDecodeError as json_e:
            _LOGGER.error(f"Failed to parse. Error: {json_e}. Text: {generated_text}", exc_info=True)
            raise ChatBotApiError(f"AI returned non-JSON response. Content: {generated_text[:500]}")

        if not isinstance(generated, dict):
            _LOGGER.error(f"AI returned JSON that is not an object: {generated_text[:500]}")
            raise ChatBotApiError("AI returned JSON that is not an object.")
        return generated

    def generate_quiz_explanation_prompt(self, question: QuizQuestion) -> str:
        options = "\n".join(f"- {option.text} (ID: {option.id})" for option in question.options)
        return _QUIZ_EXPLANATION_PROMPT_TEMPLATE.format(
            question_text=question.text,
            options=options,
            correct_option_id=question.correctOptionId,
        )

    def call_quiz_explanation_api(self, *, chatbot_api_key: str, question: QuizQuestion) -> str:
        generated_dict = self._call_google_generative_api(
            chatbot_api_key=chatbot_api_key,
            prompt=self.generate_quiz_explanation_prompt(question),
            timeout_seconds=45,
        )
        explanation = generated_dict.get("explanation")
        if not isinstance(explanation, str) or not explanation.strip():
            _LOGGER.warning(f"AI returned no explanation for question {question.id}: {generated_dict}")
            return FALLBACK_EXPLANATION
        return explanation

    def generate_component_query_prompt(self, *, query: str) -> str:
        return _COMPONENT_QUERY_PROMPT_TEMPLATE.format(query=query)

    def call_component_query_api(self, *, chatbot_api_key: str, query: str) -> ComponentQueryResponseModel:
        generated_dict = self._call_google_generative_api(
            chatbot_api_key=chatbot_api_key,
            prompt=self.generate_component_query_prompt(query=query),
            timeout_seconds=45,
        )
        try:
            return ComponentQueryResponseModel.model_validate(generated_dict)
        except pydantic.ValidationError as e:
            _LOGGER.warning(f"Unexpected component query response: {e}. Raw data: {generated_dict}")
            return ComponentQueryResponseModel(answer=FALLBACK_ANSWER)

    def generate_config_analysis_prompt(self, *, pc_config: str) -> str:
        return _CONFIG_ANALYSIS_PROMPT_TEMPLATE.format(pc_config=pc_config)

    def call_config_analysis_api(self, *, chatbot_api_key: str, pc_config: str) -> ConfigAnalysisResponseModel:
        generated_dict = self._call_google_generative_api(
            chatbot_api_key=chatbot_api_key,
            prompt=self.generate_config_analysis_prompt(pc_config=pc_config),
            timeout_seconds=60,
            max_output_tokens=1500,
        )
        try:
            return ConfigAnalysisResponseModel.model_validate(generated_dict)
        except pydantic.ValidationError as e:
            _LOGGER.error(f"Error parsing API response: {e}. Raw data: {generated_dict}", exc_info=True)
            raise ChatBotApiError(f"Invalid or unexpected response structure from AI for config analysis: {str(e)}")
