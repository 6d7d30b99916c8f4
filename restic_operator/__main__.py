import logging

import kopf

import restic_operator  # noqa: F401 (registers the handlers)
from restic_operator.config import get_config


def main() -> None:
    config = get_config()
    logging.basicConfig(
        level=config.log_level_number,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    if config.namespace:
        kopf.run(namespaces=[config.namespace])
    else:
        kopf.run(clusterwide=True)


if __name__ == '__main__':
    main()
