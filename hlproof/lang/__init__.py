"""Imp language front end: lexer, parser, abstract syntax, translation."""

from .lexer import Lexer, tokenize
from .parser import Parser, parse_concrete
from .ast_nodes import *
from .desugar import INTERPRETED_FUNCTIONS, desugar
from .translate import parse, parse_to_assertion, parse_to_command
