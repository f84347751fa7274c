"""Local save targets for downloaded files."""

import logging
from pathlib import Path
from typing import Protocol, final

logger = logging.getLogger(__name__)

# Upper bound for "name (n).ext" candidates
_MAX_SUFFIX = 10000


class SaveTarget(Protocol):
    """Somewhere downloaded bytes can be saved under a suggested name."""

    def save(self, filename: str, content: bytes) -> str:
        """Save ``content`` and return where it ended up."""


@final
class DirectorySaveTarget:
    """Saves downloads into a local directory without overwriting.

    An existing ``report.pdf`` makes the next download of that name land
    in ``report (1).pdf``, then ``report (2).pdf`` and so on.
    """

    def __init__(self, directory: Path | str) -> None:
        self.directory = Path(directory)

    def save(self, filename: str, content: bytes) -> str:
        """Write ``content`` to a free file name in the directory.

        Args:
            filename: Suggested file name. Directory parts are ignored.
            content: File content.

        Returns:
            Path of the written file.

        Raises:
            OSError: If the file cannot be written.
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        suggested = Path(Path(filename).name or 'download')

        for candidate in self._candidates(suggested):
            try:
                with candidate.open('xb') as output:
                    output.write(content)
            except FileExistsError:
                continue
            logger.info('Saved download to %s', candidate)
            return str(candidate)

        raise FileExistsError(f'No free file name for {filename} in {self.directory}')

    def _candidates(self, suggested: Path):
        yield self.directory / suggested.name
        for index in range(1, _MAX_SUFFIX):
            yield self.directory / f'{suggested.stem} ({index}){suggested.suffix}'
