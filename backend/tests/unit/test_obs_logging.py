import json
import logging

from celestia.obs import logging as obs_logging


def _record(**extra) -> logging.LogRecord:
	record = logging.LogRecord("celestia.test", logging.INFO, __file__, 1, "appeal submitted", None, None)
	for key, value in extra.items():
		setattr(record, key, value)
	return record


def test_formatter_redacts_sensitive_fields():
	formatter = obs_logging.JSONLogFormatter()

	payload = json.loads(
		formatter.format(
			_record(user_id_hint="u1", appeal_message="my phone was stolen", authorization="Bearer abc")
		)
	)

	assert payload["msg"] == "appeal submitted"
	assert payload["appeal_message"] == "[redacted]"
	assert payload["authorization"] == "[redacted]"
	assert payload["user_id_hint"] == "u1"


def test_formatter_includes_bound_request_id():
	formatter = obs_logging.JSONLogFormatter()
	tokens = obs_logging.bind_context(request_id="req-1")
	try:
		payload = json.loads(formatter.format(_record()))
	finally:
		obs_logging.reset_context(tokens)

	assert payload["request_id"] == "req-1"
	assert obs_logging.current_request_id() is None
