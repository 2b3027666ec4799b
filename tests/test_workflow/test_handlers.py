"""Unit tests for the built-in step handlers."""

import json
from unittest.mock import (
    AsyncMock,
    MagicMock,
    patch,
)

import aiosmtplib
import httpx
import pytest

from app.core.sandbox.schema import SandboxResult
from app.core.stores import InMemoryGraphStore
from app.core.workflow.errors import (
    CredentialError,
    StepConfigurationError,
    SubWorkflowCycleError,
    TransportError,
)
from app.core.workflow.handlers import (
    CapabilityStepHandler,
    CodeExecutionHandler,
    EmailActionHandler,
    HttpRequestHandler,
    SubWorkflowHandler,
    TelegramActionHandler,
    TriggerHandler,
    parse_workflow_input,
    run_subworkflow,
)
from app.core.workflow.registry import StepHandlerRegistry
from app.core.workflow.scheduler import WorkflowScheduler
from app.core.workflow.schema import Step


class TestEmailActionHandler:
    """Tests for the SMTP email handler."""

    @pytest.mark.asyncio
    async def test_recipient_from_webhook_body(self, credential_store, make_context):
        """Test the recipient falls back to the webhook body and the message is sent."""
        handler = EmailActionHandler(credential_store, smtp_host="smtp.test", smtp_port=465)
        step = Step(
            id="mail",
            type="emailAction",
            config={"credentialId": "cred-email", "subject": "Hello {{name}}", "body": "Line 1\nLine 2"},
        )
        ctx = make_context({"name": "Ada", "body": {"email": "a@b.com"}})

        with patch("app.core.workflow.handlers.messaging.aiosmtplib.send", new_callable=AsyncMock) as send:
            data = await handler.execute(step, ctx)

        assert data["to"] == "a@b.com"
        assert data["subject"] == "Hello Ada"
        assert data["from"] == "bot@example.com"
        assert data["messageId"]
        message = send.call_args.args[0]
        assert message["To"] == "a@b.com"
        assert send.call_args.kwargs["hostname"] == "smtp.test"
        assert send.call_args.kwargs["use_tls"] is True

    @pytest.mark.asyncio
    async def test_trigger_fields_fill_unset_message_fields(self, credential_store, make_graph):
        """Test a webhook-triggered email takes recipient, subject and text from the trigger output."""
        registry = StepHandlerRegistry()
        registry.register(TriggerHandler())
        registry.register(EmailActionHandler(credential_store, smtp_host="smtp.test", smtp_port=465))
        graph = make_graph(
            [("hook", "webhookTrigger"), ("mail", "emailAction", {"credentialId": "cred-email"})],
            [("hook", "mail")],
        )
        trigger_input = {"email": "a@b.com", "subject": "Welcome", "message": "Thanks for signing up"}

        with patch("app.core.workflow.handlers.messaging.aiosmtplib.send", new_callable=AsyncMock) as send:
            result = await WorkflowScheduler(registry).run(graph, trigger_input)

        assert result.success is True
        data = result.results[-1].data
        assert data["to"] == "a@b.com"
        assert data["subject"] == "Welcome"
        message = send.call_args.args[0]
        assert message["To"] == "a@b.com"
        assert message["Subject"] == "Welcome"
        plain = message.get_payload()[0]
        assert plain.get_payload(decode=True).decode() == "Thanks for signing up"

    @pytest.mark.asyncio
    async def test_missing_credential_id(self, credential_store, make_context):
        """Test a step without a credential id fails."""
        handler = EmailActionHandler(credential_store)
        step = Step(id="mail", type="emailAction", config={"to": "a@b.com"})

        with pytest.raises(CredentialError, match="No Email credential selected"):
            await handler.execute(step, make_context())

    @pytest.mark.asyncio
    async def test_credential_for_other_platform(self, credential_store, make_context):
        """Test a credential of another platform is treated as missing."""
        handler = EmailActionHandler(credential_store)
        step = Step(id="mail", type="emailAction", config={"credentialId": "cred-telegram", "to": "a@b.com"})

        with pytest.raises(CredentialError, match="Email credential not found"):
            await handler.execute(step, make_context())

    @pytest.mark.asyncio
    async def test_no_recipient(self, credential_store, make_context):
        """Test an empty recipient fails before sending."""
        handler = EmailActionHandler(credential_store)
        step = Step(id="mail", type="emailAction", config={"credentialId": "cred-email"})

        with patch("app.core.workflow.handlers.messaging.aiosmtplib.send", new_callable=AsyncMock) as send:
            with pytest.raises(StepConfigurationError, match="No recipient defined"):
                await handler.execute(step, make_context())
        send.assert_not_called()

    @pytest.mark.asyncio
    async def test_smtp_failure(self, credential_store, make_context):
        """Test SMTP errors become transport errors."""
        handler = EmailActionHandler(credential_store)
        step = Step(id="mail", type="emailAction", config={"credentialId": "cred-email", "to": "a@b.com"})

        with patch(
            "app.core.workflow.handlers.messaging.aiosmtplib.send",
            new_callable=AsyncMock,
            side_effect=aiosmtplib.SMTPException("server down"),
        ):
            with pytest.raises(TransportError, match="Failed to send email"):
                await handler.execute(step, make_context())


class TestTelegramActionHandler:
    """Tests for the Telegram Bot API handler."""

    @pytest.mark.asyncio
    async def test_send_message(self, credential_store, make_context):
        """Test a message is posted to sendMessage with the resolved chat id and text."""
        requests = []

        def respond(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": 42}})

        async with httpx.AsyncClient(transport=httpx.MockTransport(respond)) as client:
            handler = TelegramActionHandler(credential_store, client, api_base="https://tg.test")
            step = Step(id="tg", type="telegramAction", config={"credentialId": "cred-telegram", "message": "Hi {{name}}"})
            data = await handler.execute(step, make_context({"name": "Ada", "chatId": 777}))

        assert data["messageId"] == 42
        assert data["chatId"] == "777"
        assert requests[0].url.path == "/bot123:abc/sendMessage"
        assert json.loads(requests[0].content) == {"chat_id": "777", "text": "Hi Ada", "parse_mode": "HTML"}

    @pytest.mark.asyncio
    async def test_api_error_description(self, credential_store, make_context):
        """Test the Bot API error description is surfaced."""

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"ok": False, "description": "Bad Request: chat not found"})

        async with httpx.AsyncClient(transport=httpx.MockTransport(respond)) as client:
            handler = TelegramActionHandler(credential_store, client, api_base="https://tg.test")
            step = Step(id="tg", type="telegramAction", config={"credentialId": "cred-telegram", "chatId": "1"})

            with pytest.raises(TransportError, match="Telegram send failed: Bad Request: chat not found"):
                await handler.execute(step, make_context())

    @pytest.mark.asyncio
    async def test_non_object_response_body(self, credential_store, make_context):
        """Test a JSON body that is not an object is reported as a send failure."""

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, json=["unexpected"])

        async with httpx.AsyncClient(transport=httpx.MockTransport(respond)) as client:
            handler = TelegramActionHandler(credential_store, client, api_base="https://tg.test")
            step = Step(id="tg", type="telegramAction", config={"credentialId": "cred-telegram", "chatId": "1"})

            with pytest.raises(TransportError, match="Telegram send failed: Bad Gateway"):
                await handler.execute(step, make_context())

    @pytest.mark.asyncio
    async def test_missing_chat_id(self, credential_store, make_context):
        """Test an empty chat id fails."""
        handler = TelegramActionHandler(credential_store, MagicMock(), api_base="https://tg.test")
        step = Step(id="tg", type="telegramAction", config={"credentialId": "cred-telegram"})

        with pytest.raises(StepConfigurationError, match="No chat ID specified"):
            await handler.execute(step, make_context())


class TestHttpRequestHandler:
    """Tests for the HTTP call handler."""

    @pytest.mark.asyncio
    async def test_post_with_templated_body(self, make_context):
        """Test URL, headers and body are templated and the JSON response returned."""
        seen = {}

        def respond(request: httpx.Request) -> httpx.Response:
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("Authorization")
            seen["body"] = request.content.decode()
            return httpx.Response(201, json={"created": True})

        async with httpx.AsyncClient(transport=httpx.MockTransport(respond)) as client:
            handler = HttpRequestHandler(client)
            step = Step(
                id="h",
                type="httpTool",
                config={
                    "url": "https://api.test/items/{{itemId}}",
                    "method": "post",
                    "headers": {"Authorization": "Bearer {{token}}"},
                    "body": '{"name": "{{name}}"}',
                },
            )
            data = await handler.execute(step, make_context({"itemId": 7, "token": "t0k", "name": "Ada"}))

        assert seen == {"url": "https://api.test/items/7", "auth": "Bearer t0k", "body": '{"name": "Ada"}'}
        assert data["status"] == 201
        assert data["data"] == {"created": True}

    @pytest.mark.asyncio
    async def test_non_2xx_fails(self, make_context):
        """Test error statuses fail the step."""

        def respond(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500, text="oops")

        async with httpx.AsyncClient(transport=httpx.MockTransport(respond)) as client:
            step = Step(id="h", type="httpTool", config={"url": "https://api.test"})
            with pytest.raises(TransportError, match="HTTP request failed"):
                await HttpRequestHandler(client).execute(step, make_context())

    @pytest.mark.asyncio
    async def test_url_required(self, make_context):
        """Test a missing URL fails."""
        with pytest.raises(StepConfigurationError, match="URL is required for HTTP Tool"):
            await HttpRequestHandler(MagicMock()).execute(Step(id="h", type="httpTool"), make_context())


class TestCodeExecutionHandler:
    """Tests for the code step handler."""

    @pytest.mark.asyncio
    async def test_runs_code_with_templated_stdin(self, make_context):
        """Test code runs through the sandbox with resolved stdin."""
        sandbox = MagicMock()
        sandbox.execute = AsyncMock(
            return_value=SandboxResult(status="Accepted", status_id=3, stdout="120\n", language="python")
        )
        step = Step(
            id="code",
            type="codeTool",
            config={"language": "python", "code": "print(1)", "stdin": "{{n}}"},
        )

        data = await CodeExecutionHandler(sandbox).execute(step, make_context({"n": 5}))

        sandbox.execute.assert_awaited_once_with("python", "print(1)", "5")
        assert data["stdout"] == "120\n"
        assert data["statusId"] == 3

    @pytest.mark.asyncio
    async def test_missing_code(self, make_context):
        """Test a step without code fails."""
        step = Step(id="code", type="codeTool", config={"language": "python"})
        with pytest.raises(StepConfigurationError, match="No language or code configured"):
            await CodeExecutionHandler(MagicMock()).execute(step, make_context())


class TestSubWorkflow:
    """Tests for the sub-workflow handler and call guard."""

    def _scheduler(self, *graphs) -> WorkflowScheduler:
        registry = StepHandlerRegistry()
        registry.register(TriggerHandler())
        registry.register(SubWorkflowHandler())
        return WorkflowScheduler(registry, graph_store=InMemoryGraphStore(graphs), max_subworkflow_depth=3)

    @pytest.mark.asyncio
    async def test_child_receives_merged_input(self, make_graph):
        """Test the child run is started with triggerData merged with the parsed input."""
        parent = make_graph(
            [
                ("t", "manualTrigger"),
                ("w", "workflowTool", {"workflowId": "child", "triggerData": {"a": "b"}, "input": '{"x": {{n}}}'}),
            ],
            [("t", "w")],
            graph_id="parent",
        )
        child = make_graph([("ct", "manualTrigger")], graph_id="child")

        result = await self._scheduler(parent, child).run(parent, {"n": 1})

        assert result.success is True
        child_results = result.results[1].data["results"]
        assert child_results[0]["data"] == {"a": "b", "x": 1}

    @pytest.mark.asyncio
    async def test_self_call_is_a_cycle(self, make_graph):
        """Test a workflow calling itself fails the calling step."""
        loop = make_graph(
            [("t", "manualTrigger"), ("w", "workflowTool", {"workflowId": "loop"})],
            [("t", "w")],
            graph_id="loop",
        )

        result = await self._scheduler(loop).run(loop, {})

        assert result.success is False
        assert "cycle" in result.results[1].error

    @pytest.mark.asyncio
    async def test_failed_child_fails_step(self, make_graph):
        """Test the step fails when the child run fails."""
        parent = make_graph(
            [("t", "manualTrigger"), ("w", "workflowTool", {"workflowId": "nope"})],
            [("t", "w")],
            graph_id="parent",
        )

        result = await self._scheduler(parent).run(parent, {})

        assert result.results[1].success is False
        assert result.results[1].error == "Sub-workflow 'nope' failed: Workflow 'nope' not found"

    @pytest.mark.asyncio
    async def test_depth_limit(self, make_context):
        """Test the nesting depth guard."""
        ctx = make_context()
        ctx.call_stack = ("a", "b", "c")

        with pytest.raises(SubWorkflowCycleError, match="depth limit of 3"):
            await run_subworkflow(ctx, "d", {}, max_depth=3)

    def test_parse_workflow_input(self):
        """Test JSON objects merge and plain text becomes a message."""
        assert parse_workflow_input({"a": 1}, '{"b": 2}') == {"a": 1, "b": 2}
        assert parse_workflow_input({"a": 1}, "hello") == {"a": 1, "message": "hello"}
        assert parse_workflow_input(None, "") == {}


class TestCapabilityStepHandler:
    """Tests for model and memory steps reached as flow steps."""

    @pytest.mark.asyncio
    async def test_model_description_hides_api_key(self, make_context):
        """Test the API key never appears in the output."""
        step = Step(id="m", type="openaiModel", config={"apiKey": "sk-secret", "model": "gpt-4o-mini"})

        data = await CapabilityStepHandler().execute(step, make_context())

        assert data["configured"] is True
        assert "sk-secret" not in json.dumps(data)
