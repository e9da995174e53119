"""Command-style entry point for overlap/enrichment analyses.

Annotations are supplied by the embedding program through an annotation
lookup; the options are given as a command line.  The result table is
written to ``--output`` or to standard output.

Example:
    from PyOverlap.overlap import main
    main(table, ["--seed", "SP", "--other", "SO", "--bg", "BG", "--nreps", "1000"])
"""
import logging
import sys
from typing import Optional, Sequence, TextIO

from . import entrypoint, logging_version
from PyOverlap.interfaces.annotation import AnnotationSource
from PyOverlap.handler.overlap import OverlapHandler
from PyOverlap.output.table import TableSink
from PyOverlap.utils.parsearg import parse_overlap_args

logger = logging.getLogger(__name__)


@entrypoint(logger)
def main(source: AnnotationSource, argv: Optional[Sequence[str]] = None,
         stream: Optional[TextIO] = None) -> TableSink:
    """Run one analysis over ``source`` with command-line options.

    Args:
        source: Annotation lookup (also receives derived annotations when
            it can store them)
        argv: Command-line options (default: ``sys.argv[1:]``)
        stream: Destination of the result table when ``--output`` is not
            given (default: stdout)

    Returns:
        The filled result sink
    """
    args, config = parse_overlap_args(argv)
    logging_version(logger)

    sink = TableSink()
    OverlapHandler(source, config).run(sink)

    if args.output:
        sink.write_file(args.output)
    else:
        sink.write(stream or sys.stdout)

    return sink
