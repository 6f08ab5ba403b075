""" Logging setup for command line use. Library modules only ever obtain a
    module-level logger via :func:`logging.getLogger`; nothing in the library
    configures handlers, that is left to the application, or to :func:`setup`
    when running ``latticectl``.
"""

import datetime
import logging
import logging.config

from . import config
from . import json


class JSONFormatter(logging.Formatter):
    """ Render each record as a single JSON line, suitable for feeding into
        a log collector alongside ``latticectl --json`` output.
    """

    def format(self, record):

        entry = dict()
        entry['timestamp'] = datetime.datetime.now(datetime.timezone.utc).isoformat()
        entry['level'] = record.levelname
        entry['logger'] = record.name
        entry['message'] = record.getMessage()

        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)

        return json.dumps(entry).decode()


# end of class JSONFormatter



def setup(level=None, json_lines=False):
    """ Configure the root logger to write to stderr. The *level* defaults
        to the LATTICE_LOG_LEVEL environment variable; *json_lines* selects
        the :class:`JSONFormatter` instead of plain text.
    """

    if level is None:
        level = config.log_level()

    if json_lines:
        formatter = {'()': JSONFormatter}
    else:
        formatter = {'format': '%(asctime)s %(levelname)s %(name)s: %(message)s'}

    settings = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {'default': formatter},
        'handlers': {
            'stderr': {
                'class': 'logging.StreamHandler',
                'formatter': 'default',
                'stream': 'ext://sys.stderr',
            },
        },
        'root': {
            'level': str(level).upper(),
            'handlers': ['stderr'],
        },
    }

    logging.config.dictConfig(settings)


# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
