"""test_flatten.py - Unit tests for the failure-chain flattener.

Covers:
    - one block and one summary fragment per failure in a mixed chain
    - level markers on inner blocks
    - per-variant fields (service fault, HTTP fault, operation error, generic)
    - HTTP fault inner-error block and its fixed single extra level
    - malformed / missing HTTP bodies degrade to "Not Provided"
    - render-time stamping
    - cyclic chains stop at MAX_DEPTH without raising
"""

from datetime import datetime, timezone

import pytest

from faulttrace.faults import OperationError, ServiceFault
from faulttrace.flatten import BLOCK_WIDTH, MAX_DEPTH, RenderContext, flatten

RENDERED_AT = datetime(2024, 1, 15, 12, 34, 56, tzinfo=timezone.utc)

HTTP_BODY = {
    "error": {
        "message": "Principal user is missing prvCreateAccount privilege\nMore detail",
        "stacktrace": "at Crm.Security.Check()",
        "innererror": {
            "message": "Privilege check failed\nsecond line",
            "@Microsoft.PowerApps.CDS.HelpLink": "https://go.example.com/privileges",
            "stacktrace": "at Crm.Security.Inner()",
        },
    }
}


def _ctx() -> RenderContext:
    return RenderContext(rendered_at=RENDERED_AT)


def _block_headers(ctx: RenderContext):
    return [line for line in ctx.detail if line.startswith("==") and line.strip("=")]


def _raise_chain():
    """Raise RuntimeError <- OperationError <- ServiceFault <- ServiceFault."""
    try:
        try:
            raise OperationError(
                "Create failed",
                source="client",
                error_code=-2147220969,
                data={"entity": "account"},
            ) from ServiceFault(
                "Outer fault",
                error_code=-2147220969,
                inner_fault=ServiceFault("Inner fault", error_code=-2147220970),
            )
        except OperationError as exc:
            raise RuntimeError("Execute failed") from exc
    except RuntimeError as exc:
        return exc


# ---------------------------------------------------------------------------
# Chain structure
# ---------------------------------------------------------------------------


class TestChainStructure:
    def test_summary_has_one_fragment_per_failure_outermost_first(self):
        ctx = flatten(_raise_chain(), _ctx())
        assert ctx.condensed() == "Execute failed => Create failed => Outer fault => Inner fault"

    def test_dump_has_one_block_per_failure(self):
        ctx = flatten(_raise_chain(), _ctx())
        assert _block_headers(ctx) == [
            "==Exception".ljust(BLOCK_WIDTH, "="),
            "==OperationException Info".ljust(BLOCK_WIDTH, "="),
            "==ServiceFault Info".ljust(BLOCK_WIDTH, "="),
            "==ServiceFault Info".ljust(BLOCK_WIDTH, "="),
        ]

    def test_inner_blocks_carry_level_markers(self):
        ctx = flatten(_raise_chain(), _ctx())
        markers = [line for line in ctx.detail if line.startswith("Inner Exception Level")]
        assert markers == [
            "Inner Exception Level 1: ",
            "Inner Exception Level 2: ",
            "Inner Exception Level 3: ",
        ]

    @pytest.mark.parametrize("depth", [1, 2, 5, 10])
    def test_generic_chain_of_depth_n(self, depth):
        exc = ValueError("m0")
        head = exc
        for i in range(1, depth):
            nxt = ValueError(f"m{i}")
            head.__cause__ = nxt
            head = nxt
        ctx = flatten(exc, _ctx())
        assert ctx.summary == [f"m{i}" for i in range(depth)]
        assert len(_block_headers(ctx)) == depth

    def test_every_block_is_framed_by_fixed_width_lines(self):
        ctx = flatten(_raise_chain(), _ctx())
        rules = [line for line in ctx.detail if line == "=" * BLOCK_WIDTH]
        assert len(rules) == 4

    def test_flatten_none_renders_nothing(self):
        ctx = flatten(None, _ctx())
        assert ctx.detail == [] and ctx.summary == []

    def test_flatten_appends_to_given_context(self):
        ctx = _ctx()
        flatten(ValueError("first"), ctx)
        flatten(ValueError("second"), ctx)
        assert ctx.condensed() == "first => second"


# ---------------------------------------------------------------------------
# Per-variant fields
# ---------------------------------------------------------------------------


class TestServiceFaultBlock:
    def test_service_fault_fields(self):
        fault = ServiceFault(
            "Record is locked",
            error_code=-2147188475,
            trace_text="[Plugin] step 3",
            activity_id="9f1c",
            timestamp=datetime(2024, 1, 15, 12, 0, tzinfo=timezone.utc),
            error_details={"OperationStatus": 0, "SubErrorCode": None},
        )
        dump = flatten(fault, _ctx()).dump()

        assert "Error: Record is locked" in dump
        assert "Time: 2024-01-15T12:00:00+00:00" in dump
        assert "ErrorCode: -2147188475" in dump
        assert "ActivityId: 9f1c" in dump
        assert "HelpLink Url: Not Provided" in dump
        assert "Trace: [Plugin] step 3" in dump
        assert "Error Details:" in dump
        assert "    OperationStatus: 0" in dump
        assert "    SubErrorCode: Not Set" in dump

    def test_service_fault_without_optional_fields(self):
        dump = flatten(ServiceFault("bare"), _ctx()).dump()
        assert "Time: Not Provided" in dump
        assert "Trace: Not Provided" in dump
        assert "ActivityId" not in dump
        assert "Error Details" not in dump


class TestOperationErrorBlock:
    def test_operation_error_fields(self):
        exc = OperationError(
            "Save failed",
            source="client.save",
            error_code=-2147220891,
            data={"entity": "contact", "id": 7},
            help_link="https://go.example.com/save",
        )
        dump = flatten(exc, _ctx()).dump()

        assert "Source: client.save" in dump
        assert "Error: Save failed" in dump
        assert "ErrorCode: -2147220891" in dump
        assert "HelpLink Url: https://go.example.com/save" in dump
        assert "ErrorDetail:" in dump
        assert "    entity: contact" in dump
        assert "    id: 7" in dump

    def test_operation_error_unset_code_is_not_provided(self):
        dump = flatten(OperationError("x"), _ctx()).dump()
        assert "ErrorCode: Not Provided" in dump
        assert "Source: Not Provided" in dump
        assert "ErrorDetail" not in dump


class TestGenericBlock:
    def test_generic_fields_from_raised_exception(self):
        def save_record():
            raise KeyError("missing id")

        try:
            save_record()
        except KeyError as exc:
            dump = flatten(exc, _ctx()).dump()

        assert "Source: builtins" in dump
        assert "Method: save_record" in dump
        assert "Error: 'missing id'" in dump
        assert "HelpLink Url: Not Provided" in dump
        assert "Stack Trace: File" in dump

    def test_generic_never_raised_has_no_method_or_stack(self):
        dump = flatten(ValueError("plain"), _ctx()).dump()
        assert "Method: Not Provided" in dump
        assert "Stack Trace: Not Provided" in dump

    def test_generic_empty_message_is_not_provided(self):
        ctx = flatten(RuntimeError(), _ctx())
        assert "Error: Not Provided" in ctx.dump()
        assert ctx.summary == ["Not Provided"]

    def test_help_link_attribute_is_rendered(self):
        exc = ValueError("v")
        exc.help_link = "https://go.example.com/v"
        assert "HelpLink Url: https://go.example.com/v" in flatten(exc, _ctx()).dump()


class TestTransportFaultBlock:
    def test_transport_fault_with_inner_error(self, http_error):
        exc = http_error(403, body=HTTP_BODY, headers={"REQ_ID": "c0ffee"})
        ctx = flatten(exc, _ctx())
        dump = ctx.dump()

        assert "Source: httpx" in dump
        assert "Error: Principal user is missing prvCreateAccount privilege" in dump
        assert "More detail" not in dump
        assert "ActivityId: c0ffee" in dump
        assert "Stack Trace: at Crm.Security.Check()" in dump

        assert "Inner Exception Level 1: " in ctx.detail
        assert "Error: Privilege check failed" in dump
        assert "second line" not in dump
        assert "HelpLink Url: https://go.example.com/privileges" in dump
        assert "Stack Trace: at Crm.Security.Inner()" in dump
        assert len(_block_headers(ctx)) == 2

        assert ctx.condensed() == (
            "Principal user is missing prvCreateAccount privilege"
            " => Privilege check failed"
        )

    def test_transport_fault_does_not_follow_python_cause(self, http_error):
        exc = http_error(500, body={"error": {"message": "boom"}})
        exc.__cause__ = ValueError("hidden")
        ctx = flatten(exc, _ctx())
        assert ctx.summary == ["boom"]

    @pytest.mark.parametrize("text", ["", "not json at all", "{\"error\": ", "[1, 2]"])
    def test_unparseable_body_renders_not_provided(self, http_error, text):
        """Bad bodies never raise; the Error and Stack Trace fields degrade."""
        exc = http_error(502, text=text)
        ctx = flatten(exc, _ctx())
        assert "Error: Not Provided" in ctx.detail
        assert "Stack Trace: Not Provided" in ctx.detail
        assert ctx.summary == [str(exc).splitlines()[0]]
        assert "\n" not in ctx.condensed()

    def test_unparseable_body_summary_is_httpx_first_line(self, http_error):
        exc = http_error(502, text="not json")
        ctx = flatten(exc, _ctx())
        assert "For more information" in str(exc)
        assert ctx.summary == ["Server error '502 Bad Gateway' for url '" + str(exc.request.url) + "'"]

    def test_transport_fault_inside_operation_error(self, http_error):
        exc = OperationError("Execute failed", inner=http_error(404, body=HTTP_BODY))
        ctx = flatten(exc, _ctx())
        assert ctx.summary == [
            "Execute failed",
            "Principal user is missing prvCreateAccount privilege",
            "Privilege check failed",
        ]
        assert "Inner Exception Level 2: " in ctx.detail


# ---------------------------------------------------------------------------
# Stamping and termination
# ---------------------------------------------------------------------------


class TestStampingAndTermination:
    def test_blocks_stamp_render_time(self):
        dump = flatten(ValueError("v"), _ctx()).dump()
        assert "DateUTC: 2024-01-15" in dump
        assert "TimeUTC: 12:34:56" in dump

    def test_default_context_stamps_now(self):
        before = datetime.now(timezone.utc).replace(microsecond=0)
        ctx = flatten(ValueError("v"))
        assert ctx.rendered_at >= before

    def test_cyclic_chain_stops_at_max_depth(self):
        a = ValueError("a")
        b = ValueError("b")
        a.__cause__ = b
        b.__cause__ = a
        ctx = flatten(a, _ctx())
        assert len(ctx.summary) == MAX_DEPTH
        assert ctx.summary[:4] == ["a", "b", "a", "b"]

    def test_service_fault_self_cycle_stops(self):
        fault = ServiceFault("loop")
        fault.inner_fault = fault
        assert len(flatten(fault, _ctx()).summary) == MAX_DEPTH
