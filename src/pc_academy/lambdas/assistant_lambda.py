import json
import logging
import typing

from pydantic import ValidationError

from pc_academy.cloudwatch.metrics import MetricsManager
from pc_academy.dynamodb.secrets_table import SecretsTable
from pc_academy.dynamodb.throttle_table import ThrottleRateLimitExceededException, ThrottleTable
from pc_academy.models.assistant_models import ComponentQueryRequestModel, ConfigAnalysisRequestModel
from pc_academy.models.session_models import UserSession
from pc_academy.utils.apig_utils import (
    ErrorCode,
    create_error_response,
    format_lambda_response,
    get_event_body,
    get_method,
    get_path,
    get_user_session_from_event,
)
from pc_academy.utils.aws_env_vars import get_secrets_table_name, get_throttle_table_name
from pc_academy.utils.chatbot_utils import ChatBotApiError, ChatBotWrapper
from pc_academy.utils.input_validator import InputValidator, SuspiciousInputError

_LOGGER = logging.getLogger(__name__)
_LOGGER.setLevel(logging.INFO)


class AssistantApiHandler:
    def __init__(
        self,
        throttle_table: ThrottleTable,
        secrets_table: SecretsTable,
        chatbot_wrapper: ChatBotWrapper,
        metrics_manager: MetricsManager,
    ):
        self.throttle_table = throttle_table
        self.secrets_table = secrets_table
        self.chatbot_wrapper = chatbot_wrapper
        self.metrics_manager = metrics_manager

    def _handle_component_query(self, event: dict, session: UserSession) -> dict:
        request_data = ComponentQueryRequestModel.model_validate_json(get_event_body(event))
        InputValidator.validate_component_query(request_data.query)
        _LOGGER.info(f"Component query: {InputValidator.truncate_for_logging(request_data.query)}")

        with self.throttle_table.throttle_action(session.userId, "COMPONENT_QUERY_CHATBOT_API_CALL"):
            response = self.chatbot_wrapper.call_component_query_api(
                chatbot_api_key=self.secrets_table.get_gemini_api_key(),
                query=request_data.query,
            )
        self.metrics_manager.put_metric("ComponentQuery", 1)
        return format_lambda_response(200, response.model_dump(), event=event)

    def _handle_config_analysis(self, event: dict, session: UserSession) -> dict:
        request_data = ConfigAnalysisRequestModel.model_validate_json(get_event_body(event))
        InputValidator.validate_config_analysis(request_data.pcConfig)
        _LOGGER.info(f"Config analysis: {InputValidator.truncate_for_logging(request_data.pcConfig)}")

        with self.throttle_table.throttle_action(session.userId, "CONFIG_ANALYSIS_CHATBOT_API_CALL"):
            response = self.chatbot_wrapper.call_config_analysis_api(
                chatbot_api_key=self.secrets_table.get_gemini_api_key(),
                pc_config=request_data.pcConfig,
            )
        self.metrics_manager.put_metric("ConfigAnalysis", 1)
        return format_lambda_response(200, response.model_dump(), event=event)

    def handle(self, event: dict) -> dict:
        http_method = get_method(event).upper()
        path = get_path(event).rstrip("/")
        _LOGGER.info(f"AssistantApiHandler: {http_method} {path}")

        session = get_user_session_from_event(event)
        if session is None:
            return create_error_response(
                ErrorCode.AUTHENTICATION_FAILED, "Sign in to use the AI assistant.", event=event
            )

        try:
            if http_method != "POST":
                return create_error_response(ErrorCode.METHOD_NOT_ALLOWED, event=event)
            if not event.get("body"):
                return create_error_response(ErrorCode.VALIDATION_ERROR, "Request body is missing.", event=event)

            if path == "/assistant/component-query":
                return self._handle_component_query(event, session)
            elif path == "/assistant/config-analysis":
                return self._handle_config_analysis(event, session)

            _LOGGER.warning(f"Unsupported path for assistant: {path}")
            return create_error_response(ErrorCode.RESOURCE_NOT_FOUND, event=event)

        except ValidationError as e:
            _LOGGER.error(f"Assistant request body validation error: {e.errors()}", exc_info=True)
            return create_error_response(
                ErrorCode.VALIDATION_ERROR, details=e.errors(include_url=False, include_context=False), event=event
            )
        except json.JSONDecodeError:
            return create_error_response(ErrorCode.VALIDATION_ERROR, event=event)
        except SuspiciousInputError as se:
            _LOGGER.warning(f"Rejected assistant input: {se}")
            self.metrics_manager.put_metric("SuspiciousInputRejected", 1)
            return create_error_response(ErrorCode.SUSPICIOUS_INPUT, str(se), event=event)
        except ThrottleRateLimitExceededException as te:
            _LOGGER.warning(f"Throttling limit hit for assistant (user {session.userId}): {te.limit_type} - {te.message}")
            self.metrics_manager.put_metric("ThrottledRequest", 1)
            return create_error_response(ErrorCode.RATE_LIMIT_EXCEEDED, te.message, event=event)
        except ChatBotApiError as ce:
            _LOGGER.error(f"AI Service communication error: {str(ce)}", exc_info=True)
            self.metrics_manager.put_metric("ChatBotApiFailure", 1)
            return create_error_response(ErrorCode.AI_SERVICE_UNAVAILABLE, event=event)
        except Exception as e:
            _LOGGER.error(f"Unexpected error in AssistantApiHandler: {str(e)}", exc_info=True)
            return create_error_response(ErrorCode.INTERNAL_ERROR, event=event)


def assistant_lambda_handler(event: dict[str, typing.Any], context: typing.Any) -> dict[str, typing.Any]:
    metrics_manager = MetricsManager()
    metrics_manager.set_dimension("Handler", "Assistant")

    try:
        api_handler = AssistantApiHandler(
            throttle_table=ThrottleTable(get_throttle_table_name()),
            secrets_table=SecretsTable(get_secrets_table_name()),
            chatbot_wrapper=ChatBotWrapper(),
            metrics_manager=metrics_manager,
        )
        return api_handler.handle(event)

    except ValueError as ve:
        _LOGGER.critical(f"Configuration error in assistant_lambda_handler: {str(ve)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR, "Server configuration error")
    except Exception as e:
        _LOGGER.critical(f"Critical error in global handler setup: {str(e)}", exc_info=True)
        return create_error_response(ErrorCode.INTERNAL_ERROR)
    finally:
        metrics_manager.flush()
