"""
Setup script for LanChat - Peer-to-peer encrypted LAN messenger.

This messenger provides:
- Direct TCP messaging between peers on a local network (no servers)
- Selectable ciphers: None, Caesar, AES-256, Triple DES, Playfair
- RSA-wrapped hybrid mode with per-message session keys
- secp256k1 key agreement and ECDSA message signing
- Text, image and audio messages
"""

from setuptools import setup, find_packages
import os

this_directory = os.path.abspath(os.path.dirname(__file__))
with open(os.path.join(this_directory, 'README.md'), encoding='utf-8') as f:
    long_description = f.read()

setup(
    name='lanchat-messenger',
    version='1.0.0',
    author='lanchat contributors',
    description='A peer-to-peer encrypted LAN messenger with selectable ciphers, key agreement and message signing',
    long_description=long_description,
    long_description_content_type='text/markdown',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    classifiers=[
        'Development Status :: 4 - Beta',
        'Intended Audience :: End Users/Desktop',
        'Topic :: Communications :: Chat',
        'Topic :: Security :: Cryptography',
        'License :: OSI Approved :: MIT License',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Operating System :: OS Independent',
        'Environment :: Console',
    ],
    python_requires='>=3.9',
    install_requires=[
        'cryptography>=44.0.0',
        'argon2-cffi>=23.1.0',
        'rich>=13.7.0',
        'tomli>=2.0.0; python_version < "3.11"',
    ],
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.23.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'lanchat=lanchat.main:main',
        ],
    },
)
