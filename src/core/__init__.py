"""
Core Module for the deck generation pipeline.

Stage implementations (classifier, strategies, generator, recovery engine,
enhancer, assembler) and the error taxonomy. Modules are imported directly,
e.g. `from src.core.recovery_engine import RecoveryEngine`, because the models
package depends on src.core.errors.
"""
