"""
Utility modules for the Contract Deployer.
"""

__all__ = ['deadline', 'logger']
