# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Claude Code CLI adapter.

Runs ``claude --print`` headless as a child process with the prompt on
stdin. Cancelling the awaiting task terminates the child.
"""

import asyncio
import json
from typing import List, Optional, Tuple

from storyflow.core.errors import ProviderError
from storyflow.core.logging import get_engine_logger
from storyflow.llm.base import ProviderAdapter
from storyflow.llm.models import (
    CredentialValidation,
    LLMRequest,
    LLMResponse,
    ProviderCredentials,
    ProviderType,
    TokenUsage,
)

logger = get_engine_logger("providers.claude_cli")

TERMINATE_GRACE = 5.0
VERSION_TIMEOUT = 15.0


class ClaudeCodeCLIAdapter(ProviderAdapter):
    """Claude Code in headless mode"""

    provider_type = ProviderType.CLAUDE_CODE_CLI
    stream_support = True
    requires_credentials = False

    def __init__(self, command: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.command = command or self.config.claude_cli_command

    def build_args(self, request: LLMRequest) -> List[str]:
        output_format = request.provider.config.output_format or "json"
        args = [self.command, "--print", "--output-format", output_format]
        if request.provider.config.model:
            args += ["--model", request.provider.config.model]
        if request.system_prompt:
            args += ["--append-system-prompt", request.system_prompt]
        if request.skill:
            args += ["--skill", request.skill]
        return args

    async def _generate(self, request: LLMRequest) -> LLMResponse:
        args = self.build_args(request)
        logger.info(
            f"Running Claude Code CLI (skill: {request.skill or 'none'})",
            extra={"skill": request.skill}
        )
        returncode, stdout, stderr = await self._run(args, request.prompt.encode("utf-8"), self.timeout)

        if returncode != 0:
            detail = stderr.strip() or stdout.strip() or f"exit code {returncode}"
            raise ProviderError(f"Claude Code CLI failed: {detail[:500]}", ProviderError.BACKEND, self.type)

        return self._parse_output(stdout, request)

    def _parse_output(self, stdout: str, request: LLMRequest) -> LLMResponse:
        model = request.provider.config.model
        try:
            data = json.loads(stdout)
        except ValueError:
            # --output-format text
            return LLMResponse(success=True, output=stdout.strip(), model=model)

        if not isinstance(data, dict):
            return LLMResponse(success=True, output=stdout.strip(), model=model)
        if data.get("is_error"):
            raise ProviderError(
                f"Claude Code reported an error: {data.get('result', 'unknown error')}",
                ProviderError.BACKEND, self.type
            )

        usage = None
        if isinstance(data.get("usage"), dict):
            usage = TokenUsage.from_counts(
                data["usage"].get("input_tokens"), data["usage"].get("output_tokens")
            )
        return LLMResponse(
            success=True,
            output=str(data.get("result", "")),
            model=data.get("model", model),
            usage=usage,
        )

    async def _check_credentials(self, credentials: ProviderCredentials) -> CredentialValidation:
        returncode, stdout, stderr = await self._run([self.command, "--version"], None, VERSION_TIMEOUT)
        if returncode != 0:
            return CredentialValidation(valid=False, error=stderr.strip() or "claude --version failed")
        return CredentialValidation(valid=True, model=credentials.model or stdout.strip() or None)

    async def _run(self, args: List[str], stdin: Optional[bytes], timeout: float) -> Tuple[int, str, str]:
        try:
            process = await asyncio.create_subprocess_exec(
                *args,
                stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise ProviderError(
                f"Claude Code CLI not found ('{self.command}'). Please install it first.",
                ProviderError.CONFIGURATION, self.type
            )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(input=stdin), timeout=timeout)
        except asyncio.TimeoutError:
            await self._terminate(process)
            raise ProviderError(
                f"Claude Code CLI timed out after {timeout}s", ProviderError.NETWORK, self.type
            )
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        return (
            process.returncode,
            stdout.decode("utf-8", errors="replace"),
            stderr.decode("utf-8", errors="replace"),
        )

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        logger.warning(f"Terminating Claude Code CLI process {process.pid}")
        process.terminate()
        try:
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
