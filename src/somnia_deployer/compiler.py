"""
Compiler collaborator.

The pipeline only needs ``compile(source_path) -> CompiledArtifact``; any
failure there surfaces as CompilationError before deployment starts.
:class:`HardhatArtifactCompiler` runs ``npx hardhat compile`` and reads the
artifact JSON Hardhat writes under ``artifacts/``.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from somnia_deployer.errors import CompilationError
from somnia_deployer.utils.logging import get_logger

_logger = get_logger(__name__)

DEFAULT_COMPILE_COMMAND = ("npx", "hardhat", "compile")


class CompiledArtifact(BaseModel):
    """Bytecode plus ABI of one contract, as produced by the compiler."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Contract name")
    bytecode: str = Field(..., description="Creation bytecode, 0x-prefixed hex")
    abi: List[Dict[str, Any]] = Field(
        default_factory=list,
        description="Interface descriptor (functions, constructor, events)",
    )
    source_path: Optional[str] = Field(default=None, description="Source file, if known")

    @field_validator("bytecode")
    @classmethod
    def _check_bytecode(cls, value: str) -> str:
        value = value.strip()
        if not value.startswith("0x"):
            value = "0x" + value
        try:
            bytes.fromhex(value[2:])
        except ValueError:
            raise ValueError("bytecode must be hex encoded") from None
        if len(value) <= 2:
            raise ValueError("bytecode is empty (abstract contract or interface?)")
        return value.lower()

    @property
    def constructor(self) -> Optional[Dict[str, Any]]:
        return next((item for item in self.abi if item.get("type") == "constructor"), None)

    @property
    def constructor_inputs(self) -> List[Dict[str, Any]]:
        ctor = self.constructor
        return list(ctor.get("inputs") or []) if ctor else []

    @property
    def is_payable_constructor(self) -> bool:
        ctor = self.constructor
        return bool(ctor) and ctor.get("stateMutability") == "payable"

    @property
    def bytecode_size(self) -> int:
        return (len(self.bytecode) - 2) // 2


class Compiler(Protocol):
    async def compile(self, source_path: Union[str, Path]) -> CompiledArtifact:
        ...


def load_artifact(path: Union[str, Path], source_path: Optional[str] = None) -> CompiledArtifact:
    """
    Load a Hardhat (``bytecode: "0x.."``) or Foundry (``bytecode.object``)
    artifact file.

    Raises:
        CompilationError: missing, unreadable or invalid artifact.
    """
    path = Path(path)
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError:
        raise CompilationError(f"Compilation artifact not found: {path}", source_path=source_path) from None
    except (OSError, ValueError) as e:
        raise CompilationError(f"Unreadable artifact {path.name}: {e}", source_path=source_path) from None

    if not isinstance(raw, dict):
        raise CompilationError(f"Artifact {path.name} is not a JSON object", source_path=source_path)

    bytecode = raw.get("bytecode")
    if isinstance(bytecode, dict):
        bytecode = bytecode.get("object")

    try:
        return CompiledArtifact(
            name=raw.get("contractName") or path.stem,
            bytecode=bytecode or "",
            abi=raw.get("abi") or [],
            source_path=source_path or raw.get("sourceName"),
        )
    except ValidationError as e:
        first = e.errors()[0].get("msg", "invalid artifact")
        raise CompilationError(f"Invalid artifact {path.name}: {first}", source_path=source_path) from None


class HardhatArtifactCompiler:
    """
    Compile with Hardhat and read the resulting artifact.

    Example:
        ```python
        compiler = HardhatArtifactCompiler("/path/to/project")
        artifact = await compiler.compile("contracts/MyToken.sol")
        ```
    """

    def __init__(
        self,
        project_root: Union[str, Path],
        *,
        run_compile: bool = True,
        command: Sequence[str] = DEFAULT_COMPILE_COMMAND,
        timeout: float = 300.0,
    ) -> None:
        self.project_root = Path(project_root).resolve()
        self.run_compile = run_compile
        self.command = tuple(command)
        self.timeout = timeout

    def artifact_path(self, source: Path, contract_name: Optional[str] = None) -> Path:
        name = contract_name or source.stem
        try:
            relative = source.resolve().relative_to(self.project_root)
        except ValueError:
            relative = Path("contracts") / source.name
        return self.project_root / "artifacts" / relative / f"{name}.json"

    async def _run(self, source: Path) -> None:
        try:
            process = await asyncio.create_subprocess_exec(
                *self.command,
                cwd=str(self.project_root),
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError:
            raise CompilationError(
                f"Compiler command not found: {self.command[0]}", source_path=str(source)
            ) from None

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=self.timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            raise CompilationError(
                f"Compilation timed out after {self.timeout:g}s", source_path=str(source)
            ) from None

        if process.returncode != 0:
            output = (stderr or stdout).decode("utf-8", errors="replace").strip()
            raise CompilationError(
                f"Hardhat compilation failed (exit {process.returncode})",
                source_path=str(source),
                output=output,
            )

    async def compile(
        self,
        source_path: Union[str, Path],
        contract_name: Optional[str] = None,
    ) -> CompiledArtifact:
        source = Path(source_path)
        if not source.is_absolute():
            source = self.project_root / source
        if not source.is_file():
            raise CompilationError(f"Contract file not found: {source_path}", source_path=str(source_path))

        if self.run_compile:
            _logger.info("Compiling contract", extra={"source": str(source)})
            await self._run(source)

        artifact = load_artifact(self.artifact_path(source, contract_name), source_path=str(source_path))
        _logger.info(
            "Artifact loaded",
            extra={"contract": artifact.name, "bytecode_bytes": artifact.bytecode_size},
        )
        return artifact
