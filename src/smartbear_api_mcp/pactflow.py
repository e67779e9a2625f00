from typing import Any, Dict, List, Optional
from urllib.parse import quote

from mcp.server import FastMCP

from .agent import ProductAgent, error_response
from .client import ResourceClient
from .errors import ApiClientError
from .models import FieldPolicy, RequestDescriptor

FIELD_POLICIES = {
    "entitlement": FieldPolicy.passthrough(),
    "provider_states": FieldPolicy.passthrough(),
    # HAL navigation links are stripped at every depth
    "deployment_decision": FieldPolicy.deny("_links"),
    "matrix": FieldPolicy.deny("_links"),
}

SUPPORTED_LANGUAGES = ["javascript", "typescript", "java", "golang", "dotnet", "kotlin", "swift", "php"]


def _without_none(**values: Any) -> Dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class PactflowAgent(ProductAgent):
    """
    Contract testing against PactFlow or a self-hosted Pact Broker.

    The AI tools (generation and review) are PactFlow-only and run as asynchronous jobs:
    the request is submitted, then polled until the result is ready.
    """
    name = "Contract Testing"
    prefix = "pactflow"

    def __init__(self, mcp_server: FastMCP, client: ResourceClient):
        super().__init__(mcp_server, client)
        self.register_tools(
            self.generate_pact_tests,
            self.review_pact_tests,
            self.check_ai_entitlements,
            self.get_provider_states,
            self.can_i_deploy,
            self.get_matrix,
        )

    ################################## PactFlow AI

    async def generate_pact_tests(
            self,
            language: str,
            request_response: Optional[Dict[str, Any]] = None,
            code: Optional[List[Dict[str, str]]] = None,
            openapi: Optional[Dict[str, Any]] = None,
            additional_instructions: Optional[str] = None,
            test_template: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Generates Pact consumer tests with PactFlow AI. Provide at least one source: a recorded
        request/response pair, client code files, or an OpenAPI document with the endpoint to cover.
        Generation can take up to two minutes.

        :param language: Required. Target language: javascript, typescript, java, golang, dotnet, kotlin, swift or php.
        :param request_response: Optional. {"request": {"filename", "body"}, "response": {"filename", "body"}}.
        :param code: Optional. Client code files, each {"filename": ..., "body": ...}.
        :param openapi: Optional. {"document": <OpenAPI document>, "matcher": {"path": ..., "methods": [...]}}.
        :param additional_instructions: Optional. Free-text guidance for the generator.
        :param test_template: Optional. An existing test file, {"filename", "body"}, to copy the style of.
        """
        if language not in SUPPORTED_LANGUAGES:
            return {"error": f"Unsupported language: {language}", "supported_languages": SUPPORTED_LANGUAGES}

        body = _without_none(
            language=language,
            requestResponse=request_response,
            code=code,
            openapi=openapi,
            additionalInstructions=additional_instructions,
            testTemplate=test_template,
        )
        return await self._run_ai_job("/api/ai/generate", body, "Generation")

    async def review_pact_tests(
            self,
            pact_tests: Dict[str, str],
            code: Optional[List[Dict[str, str]]] = None,
            user_instructions: Optional[str] = None,
            error_messages: Optional[List[str]] = None,
            openapi: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Reviews existing Pact tests with PactFlow AI and suggests improvements.

        :param pact_tests: Required. The test file to review, {"filename": ..., "body": ..., "language": ...}.
        :param code: Optional. Related client code files, each {"filename": ..., "body": ...}.
        :param user_instructions: Optional. What the review should focus on.
        :param error_messages: Optional. Failures seen when running the tests.
        :param openapi: Optional. {"document": <OpenAPI document>, "matcher": {...}} describing the provider.
        """
        body = _without_none(
            pactTests=pact_tests,
            code=code,
            userInstructions=user_instructions,
            errorMessages=error_messages,
            openapi=openapi,
        )
        return await self._run_ai_job("/api/ai/review", body, "Review Pacts")

    async def _run_ai_job(self, url: str, body: Dict[str, Any], operation: str) -> Dict[str, Any]:
        try:
            result = await self.client.run_job(RequestDescriptor(method="POST", url=url, body=body), operation)
        except ApiClientError as e:
            response = error_response(e)
            if response.get("status_code") == 401:
                response["suggestion"] = "Use check_ai_entitlements to verify AI permissions and remaining credits"
            return response
        return result

    async def check_ai_entitlements(self) -> Dict[str, Any]:
        """
        Returns the PactFlow AI permissions and credits of the current user and organization.
        Use this when an AI tool fails with a 401.
        """
        try:
            envelope = await self.client.request_object(RequestDescriptor(url="/api/ai/entitlement"), "entitlement")
        except ApiClientError as e:
            return error_response(e)
        return envelope.body

    ################################## Pact Broker

    async def get_provider_states(self, provider: str) -> Dict[str, Any]:
        """
        Lists the provider states that consumers expect the given provider to support.
        :param provider: Required. The provider (pacticipant) name.
        """
        try:
            envelope = await self.client.request_object(
                RequestDescriptor(url=f"/pacts/provider/{quote(provider, safe='')}/provider-states"),
                "provider_states",
            )
        except ApiClientError as e:
            return error_response(e)
        return envelope.body

    async def can_i_deploy(self, pacticipant: str, version: str, environment: str) -> Dict[str, Any]:
        """
        Checks whether a version of a pacticipant is compatible with everything already deployed to an
        environment, and so safe to deploy.
        :param pacticipant: Required. The service name.
        :param version: Required. The version to check.
        :param environment: Required. The target environment, e.g. 'production'.
        """
        params = [("pacticipant", pacticipant), ("version", version), ("environment", environment)]
        try:
            envelope = await self.client.request_object(
                RequestDescriptor(url="/can-i-deploy", params=params), "deployment_decision"
            )
        except ApiClientError as e:
            return error_response(e)
        return envelope.body

    async def get_matrix(
            self,
            selectors: List[Dict[str, Any]],
            latestby: Optional[str] = None,
            limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Returns the verification matrix between pacticipant versions.
        :param selectors: Required. Each selector names a 'pacticipant' and optionally a 'version',
            'branch', 'environment', 'latest' or 'tag'.
        :param latestby: Optional. 'cvp' (latest per consumer version and provider) or 'cvpv'.
        :param limit: Optional. Maximum number of matrix rows.
        """
        if not selectors:
            return {"error": "At least one selector is required"}

        params = []
        for selector in selectors:
            for key, value in selector.items():
                if value is None:
                    continue
                if isinstance(value, bool):
                    value = "true" if value else "false"
                params.append((f"q[][{key}]", value))
        if latestby:
            params.append(("latestby", latestby))
        if limit:
            params.append(("limit", limit))

        try:
            envelope = await self.client.request_object(RequestDescriptor(url="/matrix", params=params), "matrix")
        except ApiClientError as e:
            return error_response(e)
        return envelope.body
