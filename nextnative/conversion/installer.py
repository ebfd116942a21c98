from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


@dataclass
class InstallResult:
  success: bool
  packages: List[str] = field(default_factory=list)
  tool: Optional[str] = None
  error: Optional[str] = None


class DependencyInstaller(Protocol):
  async def install(self, project_path: Path, packages: Sequence[str]) -> InstallResult:
    ...


class NpmInstaller:
  """Installs packages with npm, falling back to yarn when npm is missing or fails."""

  def __init__(self) -> None:
    self.npm_path = shutil.which('npm')
    self.yarn_path = shutil.which('yarn')

  async def install(self, project_path: Path, packages: Sequence[str]) -> InstallResult:
    return await asyncio.to_thread(self._install, Path(project_path), list(packages))

  def _install(self, project_path: Path, packages: List[str]) -> InstallResult:
    if not packages:
      return InstallResult(success=True)
    errors = []
    commands = []
    if self.npm_path:
      commands.append(('npm', [self.npm_path, 'install', *packages]))
    if self.yarn_path:
      commands.append(('yarn', [self.yarn_path, 'add', *packages]))
    if not commands:
      return InstallResult(success=False, packages=packages, error='neither npm nor yarn is available on host')
    for tool, command in commands:
      logger.info('Installing %s with %s in %s', ' '.join(packages), tool, project_path)
      try:
        process = subprocess.run(command, cwd=str(project_path), capture_output=True, text=True)
      except OSError as error:
        errors.append(f'{tool}: {error}')
        continue
      if process.returncode == 0:
        return InstallResult(success=True, packages=packages, tool=tool)
      errors.append(f'{tool}: {process.stderr.strip()[-500:]}')
      logger.warning('%s install failed with exit code %s', tool, process.returncode)
    return InstallResult(success=False, packages=packages, error='; '.join(errors))
