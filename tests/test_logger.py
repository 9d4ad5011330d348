"""
日志脱敏
"""
from of_core.utils.logger import PIIMaskingProcessor


class TestPIIMasking:

    def setup_method(self):
        self.processor = PIIMaskingProcessor()

    def mask(self, **event):
        return self.processor(None, "info", event)

    def test_phone_numbers_masked(self):
        event = self.mask(action="Customer created", phone="0771234567", note="call +94771234567")
        assert event["phone"] == "077****567"
        assert event["note"] == "call +947****567"

    def test_trace_id_kept_intact(self):
        trace_id = "7c1e2a90-1b2c-4d3e-8f00-123456789012"
        assert self.mask(trace_id=trace_id)["trace_id"] == trace_id

    def test_digit_runs_inside_identifiers_not_masked(self):
        event = self.mask(
            request_id="7c1e2a90-1b2c-4d3e-8f00-123456789012",
            total_amount="12345678901.00"
        )
        assert event["request_id"] == "7c1e2a90-1b2c-4d3e-8f00-123456789012"
        assert event["total_amount"] == "12345678901.00"

    def test_email_and_secrets_masked(self):
        event = self.mask(email="owner@corner.example", detail="token=abc123")
        assert event["email"] == "o***@corner.example"
        assert event["detail"] == "token=***MASKED***"
