import yaml

from repokeeper.domain.config_tree import ConfigMapping
from repokeeper.domain.exceptions import ConfigParseError

REPO_SECTION = "repo"


class YamlDocumentReader:
    """
    Translates raw YAML bytes into immutable ConfigMapping trees.
    """

    @staticmethod
    def parse(data: bytes) -> ConfigMapping:
        """
        Parses a YAML document whose top level must be a mapping.

        Args:
            data (bytes): UTF-8 encoded YAML.

        Returns:
            ConfigMapping: The frozen document tree.

        Raises:
            ConfigParseError: If the bytes are not valid YAML or the top level is not a mapping.
        """
        try:
            raw = yaml.safe_load(data.decode("utf-8"))
        except UnicodeDecodeError as e:
            raise ConfigParseError(f"Configuration is not valid UTF-8: {e}") from e
        except yaml.YAMLError as e:
            raise ConfigParseError(f"Configuration is not valid YAML: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigParseError(
                f"Configuration top level must be a mapping, got {type(raw).__name__}."
            )
        return ConfigMapping(raw)

    @staticmethod
    def parse_repo(data: bytes) -> ConfigMapping:
        """Parses a repository document, which must have a `repo` mapping at its root."""
        document = YamlDocumentReader.parse(data)
        if not isinstance(document.get(REPO_SECTION), ConfigMapping):
            raise ConfigParseError(f"Repository configuration must have a '{REPO_SECTION}' mapping.")
        return document
