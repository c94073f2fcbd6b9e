"""
Content of the files workflows generate.

Functions return either text or a JSON/YAML-serialisable object; the
filesystem tool picks the serialisation from the target file name.
"""

from typing import Any, Dict, List, Optional

ML_REQUIREMENTS: Dict[str, List[str]] = {
    "Data manipulation": ["numpy>=1.20.0", "pandas>=1.3.0", "scipy>=1.7.0"],
    "Machine learning": ["scikit-learn>=1.0.0", "tensorflow>=2.8.0", "torch>=1.10.0"],
    "Visualization": ["matplotlib>=3.5.0", "seaborn>=0.11.0"],
    "Jupyter": ["jupyter>=1.0.0", "ipykernel>=6.0.0"],
    "Development tools": ["pytest>=6.0.0", "black>=22.0.0", "flake8>=4.0.0", "isort>=5.0.0"],
}

BASE_PACKAGES = ["numpy", "pandas", "scikit-learn", "matplotlib", "jupyter"]
BASE_REQUIREMENTS = BASE_PACKAGES + ["pytest", "black", "flake8"]

AZURE_SDK_PACKAGES = ["azure-storage-blob", "azure-identity", "azure-keyvault-secrets"]

EDITOR_EXTENSIONS = [
    "ms-python.python",
    "ms-python.vscode-pylance",
    "ms-python.black-formatter",
    "ms-python.flake8",
    "ms-toolsai.jupyter",
    "ms-vscode.azurecli",
    "ms-azuretools.vscode-azureresourcegroups",
    "ms-azure-devops.azure-pipelines",
]

_GITIGNORE_PYTHON = """# Python
__pycache__/
*.py[cod]
*$py.class
*.so
.Python
env/
build/
develop-eggs/
dist/
downloads/
eggs/
.eggs/
lib/
lib64/
parts/
sdist/
var/
*.egg-info/
.installed.cfg
*.egg
"""

_GITIGNORE_VENV = """
# Virtual Environment
.venv/
venv/
ENV/
"""

_GITIGNORE_COMMON = """
# Jupyter Notebook
.ipynb_checkpoints

# VS Code
.vscode/*
!.vscode/settings.json
!.vscode/tasks.json
!.vscode/launch.json
!.vscode/extensions.json

# Data
data/
*.csv
*.parquet
*.h5
"""

_GITIGNORE_MODELS = """
# Models
*.pkl
*.h5
*.pt
*.pb
"""


def gitignore(virtualenv: bool = True, models: bool = True) -> str:
    """Build the project ``.gitignore``."""
    text = _GITIGNORE_PYTHON
    if virtualenv:
        text += _GITIGNORE_VENV
    text += _GITIGNORE_COMMON
    if models:
        text += _GITIGNORE_MODELS
    return text


def editor_settings(interpreter: Optional[str] = None) -> Dict[str, Any]:
    """Workspace ``settings.json`` for a generated ML project."""
    settings: Dict[str, Any] = {}
    if interpreter:
        settings["python.defaultInterpreterPath"] = interpreter
    settings.update(
        {
            "python.linting.enabled": True,
            "python.linting.flake8Enabled": True,
            "python.formatting.provider": "black",
            "editor.formatOnSave": True,
            "python.testing.pytestEnabled": True,
            "python.testing.unittestEnabled": False,
            "python.testing.nosetestsEnabled": False,
            "python.testing.pytestArgs": ["tests"],
        }
    )
    return settings


def python_editor_settings() -> Dict[str, Any]:
    """``settings.json`` for an existing Python directory."""
    return {
        "python.linting.enabled": True,
        "python.linting.flake8Enabled": True,
        "python.linting.pylintEnabled": False,
        "python.formatting.provider": "black",
        "editor.formatOnSave": True,
        "python.testing.pytestEnabled": True,
        "python.testing.unittestEnabled": False,
        "python.testing.nosetestsEnabled": False,
        "python.testing.pytestArgs": ["tests"],
        "python.analysis.extraPaths": ["${workspaceFolder}"],
        "jupyter.notebookFileRoot": "${workspaceFolder}",
    }


def editor_launch() -> Dict[str, Any]:
    """``launch.json`` with current-file and test debugging."""
    return {
        "version": "0.2.0",
        "configurations": [
            {
                "name": "Python: Current File",
                "type": "python",
                "request": "launch",
                "program": "${file}",
                "console": "integratedTerminal",
                "justMyCode": False,
            },
            {
                "name": "Python: Debug Tests",
                "type": "python",
                "request": "launch",
                "program": "${file}",
                "purpose": ["debug-test"],
                "console": "integratedTerminal",
                "justMyCode": False,
            },
        ],
    }


def project_readme(project_name: str) -> str:
    return f"""# {project_name}

ML project created with automated setup script.

## Project Structure

- `data/`: Data files
- `src/models/`: Model training code
- `src/pipelines/`: ML pipeline definitions
- `config/`: Configuration files
- `notebooks/`: Jupyter notebooks
- `tests/`: Unit and integration tests
"""


def venv_readme(project_name: str) -> str:
    return f"""# {project_name}

ML project created with automated setup script.

## Setup

1. Activate the virtual environment:
   ```
   source .venv/bin/activate
   ```

2. Install dependencies:
   ```
   pip install -r requirements.txt
   ```
"""


def conda_readme(project_name: str) -> str:
    return f"""# {project_name}

ML project created with automated setup script using Conda.

## Setup

1. Activate the Conda environment:
   ```
   conda activate {project_name}
   ```

2. Install dependencies:
   ```
   conda env update -f environment.yml
   ```
"""


def base_requirements() -> str:
    return "\n".join(BASE_REQUIREMENTS) + "\n"


def ml_requirements() -> str:
    sections = []
    for title, packages in ML_REQUIREMENTS.items():
        sections.append("\n".join([f"# {title}", *packages]))
    return "\n\n".join(sections) + "\n"


def conda_environment(project_name: str, python_version: str = "3.9") -> Dict[str, Any]:
    """``environment.yml``: conda packages plus a pip sub-list."""
    return {
        "name": project_name,
        "channels": ["conda-forge", "defaults"],
        "dependencies": [
            f"python={python_version}",
            "numpy>=1.20.0",
            "pandas>=1.3.0",
            "scipy>=1.7.0",
            "scikit-learn>=1.0.0",
            "matplotlib>=3.5.0",
            "seaborn>=0.11.0",
            "jupyter>=1.0.0",
            "ipykernel>=6.0.0",
            "pytest>=6.0.0",
            "pip>=21.0.0",
            {
                "pip": [
                    "tensorflow>=2.8.0",
                    "torch>=1.10.0",
                    "black>=22.0.0",
                    "flake8>=4.0.0",
                    "isort>=5.0.0",
                ]
            },
        ],
    }


def data_loader_module(project_name: str) -> str:
    return f'''"""
Data loading utilities for {project_name}.
"""

import pandas as pd
from pathlib import Path


def load_csv(file_path):
    """
    Load a CSV file into a pandas DataFrame.

    Args:
        file_path: Path to the CSV file

    Returns:
        pandas.DataFrame: The loaded data
    """
    return pd.read_csv(file_path)


def save_csv(df, file_path):
    """
    Save a pandas DataFrame to a CSV file.

    Args:
        df: pandas.DataFrame to save
        file_path: Path where the CSV file will be saved
    """
    Path(file_path).parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(file_path, index=False)
    print(f"Data saved to {{file_path}}")
'''


DATA_LOADER_TEST = '''"""
Tests for data_loader module.
"""

import os
import tempfile

import pandas as pd

from src.utils.data_loader import load_csv, save_csv


def test_save_and_load_csv():
    """Test that we can save and load a CSV file."""
    df = pd.DataFrame({"col1": [1, 2, 3], "col2": ["a", "b", "c"]})

    with tempfile.NamedTemporaryFile(suffix=".csv", delete=False) as tmp:
        tmp_path = tmp.name

    try:
        save_csv(df, tmp_path)
        assert os.path.exists(tmp_path)

        loaded_df = load_csv(tmp_path)
        pd.testing.assert_frame_equal(df, loaded_df)
    finally:
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
'''


def _cell(cell_type: str, lines: List[str]) -> Dict[str, Any]:
    cell: Dict[str, Any] = {"cell_type": cell_type, "metadata": {}, "source": lines}
    if cell_type == "code":
        cell["execution_count"] = None
        cell["outputs"] = []
    return cell


def exploration_notebook(project_name: str) -> Dict[str, Any]:
    """``notebooks/01-data-exploration.ipynb`` in nbformat 4."""
    return {
        "cells": [
            _cell("markdown", [f"# Data Exploration for {project_name}"]),
            _cell(
                "code",
                [
                    "import pandas as pd\n",
                    "import numpy as np\n",
                    "import matplotlib.pyplot as plt\n",
                    "import seaborn as sns\n",
                    "\n",
                    "%matplotlib inline\n",
                    "sns.set_style('whitegrid')",
                ],
            ),
            _cell("markdown", ["## Load Data"]),
            _cell(
                "code",
                [
                    "# Add code to load your data\n",
                    "# Example:\n",
                    "# df = pd.read_csv('../data/your_data.csv')",
                ],
            ),
            _cell("markdown", ["## Explore Data"]),
            _cell(
                "code",
                [
                    "# Add code to explore your data\n",
                    "# Example:\n",
                    "# df.head()",
                ],
            ),
        ],
        "metadata": {
            "kernelspec": {
                "display_name": f"Python ({project_name})",
                "language": "python",
                "name": project_name,
            },
            "language_info": {
                "codemirror_mode": {"name": "ipython", "version": 3},
                "file_extension": ".py",
                "mimetype": "text/x-python",
                "name": "python",
                "nbconvert_exporter": "python",
                "pygments_lexer": "ipython3",
            },
        },
        "nbformat": 4,
        "nbformat_minor": 4,
    }


def deploy_pipeline(resource_group: str, location: str, connection_name: str) -> str:
    """Azure Pipelines YAML deploying a resource group and storage account."""
    return f"""trigger:
- main

pool:
  vmImage: 'ubuntu-latest'

variables:
  resourceGroupName: '{resource_group}'
  location: '{location}'

stages:
- stage: Deploy
  displayName: 'Deploy to Azure'
  jobs:
  - job: DeployResources
    displayName: 'Deploy Azure Resources'
    steps:
    - task: AzureCLI@2
      displayName: 'Create Resource Group'
      inputs:
        azureSubscription: '{connection_name}'
        scriptType: 'bash'
        scriptLocation: 'inlineScript'
        inlineScript: |
          az group create --name $(resourceGroupName) --location $(location)

    - task: AzureCLI@2
      displayName: 'Deploy Storage Account'
      inputs:
        azureSubscription: '{connection_name}'
        scriptType: 'bash'
        scriptLocation: 'inlineScript'
        inlineScript: |
          az storage account create \\
            --name mlopsdata$RANDOM \\
            --resource-group $(resourceGroupName) \\
            --location $(location) \\
            --sku Standard_LRS
"""


def storage_arm_template() -> Dict[str, Any]:
    """ARM template for a TLS 1.2, HTTPS-only StorageV2 account."""
    return {
        "$schema": "https://schema.management.azure.com/schemas/2019-04-01/deploymentTemplate.json#",
        "contentVersion": "1.0.0.0",
        "parameters": {
            "storageAccountName": {
                "type": "string",
                "metadata": {"description": "Name of the storage account"},
            },
            "location": {
                "type": "string",
                "defaultValue": "[resourceGroup().location]",
                "metadata": {"description": "Location for all resources"},
            },
        },
        "resources": [
            {
                "type": "Microsoft.Storage/storageAccounts",
                "apiVersion": "2021-04-01",
                "name": "[parameters('storageAccountName')]",
                "location": "[parameters('location')]",
                "sku": {"name": "Standard_LRS"},
                "kind": "StorageV2",
                "properties": {
                    "supportsHttpsTrafficOnly": True,
                    "minimumTlsVersion": "TLS1_2",
                },
            }
        ],
        "outputs": {
            "storageAccountName": {
                "type": "string",
                "value": "[parameters('storageAccountName')]",
            }
        },
    }


PIPELINE_README = """# Azure Infrastructure Deployment

This repository contains infrastructure as code for deploying Azure resources.

## Pipeline

The Azure DevOps pipeline automatically deploys the following resources:
- Resource Group
- Storage Account

## ARM Templates

The `templates` directory contains ARM templates for deploying resources.

## How to Use

1. Clone this repository
2. Modify the templates as needed
3. Push changes to trigger the pipeline
"""


def project_config_module(
    project_name: str,
    resource_group: str,
    storage_account: str,
    key_vault: str,
    connection_string: str,
) -> str:
    """``<project>-config.py`` consumed by ``access-azure-resources.py``."""
    return f'''# Azure Configuration for {project_name}

# Resource information
RESOURCE_GROUP = "{resource_group}"
STORAGE_ACCOUNT = "{storage_account}"
KEYVAULT_NAME = "{key_vault}"

# Connection strings
STORAGE_CONNECTION_STRING = "{connection_string}"

# Container names
DATA_CONTAINER = "data"
MODELS_CONTAINER = "models"
OUTPUTS_CONTAINER = "outputs"


# Function to get a secret from Key Vault
def get_secret(secret_name):
    from azure.identity import DefaultAzureCredential
    from azure.keyvault.secrets import SecretClient

    credential = DefaultAzureCredential()
    secret_client = SecretClient(
        vault_url=f"https://{{KEYVAULT_NAME}}.vault.azure.net/", credential=credential
    )
    return secret_client.get_secret(secret_name).value
'''


def access_script(project_name: str) -> str:
    """
    ``access-azure-resources.py``: list/upload/download blobs and read
    Key Vault secrets. The config module name contains hyphens, so it is
    loaded from its path rather than imported by name.
    """
    return f'''#!/usr/bin/env python3
"""
Script to access Azure resources from local environment.
"""

import importlib.util
import os
import sys
from pathlib import Path

from azure.identity import DefaultAzureCredential
from azure.keyvault.secrets import SecretClient
from azure.storage.blob import BlobServiceClient

CONFIG_FILE = Path(__file__).resolve().parent / "{project_name}-config.py"
USAGE = "Usage: python access-azure-resources.py [list|upload|download|secret]"


def load_config():
    spec = importlib.util.spec_from_file_location("project_config", CONFIG_FILE)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


config = load_config()


def list_blobs(container_name):
    """List all blobs in a container."""
    try:
        blob_service_client = BlobServiceClient.from_connection_string(
            config.STORAGE_CONNECTION_STRING
        )
        container_client = blob_service_client.get_container_client(container_name)
        print(f"Blobs in container '{{container_name}}':")
        for blob in container_client.list_blobs():
            print(f"  {{blob.name}}")
    except Exception as e:
        print(f"Error listing blobs: {{e}}")


def upload_blob(container_name, local_file_path, blob_name=None):
    """Upload a file to a container."""
    if blob_name is None:
        blob_name = os.path.basename(local_file_path)
    try:
        blob_service_client = BlobServiceClient.from_connection_string(
            config.STORAGE_CONNECTION_STRING
        )
        blob_client = blob_service_client.get_blob_client(
            container=container_name, blob=blob_name
        )
        with open(local_file_path, "rb") as data:
            blob_client.upload_blob(data, overwrite=True)
        print(f"Uploaded {{local_file_path}} to {{container_name}}/{{blob_name}}")
    except Exception as e:
        print(f"Error uploading blob: {{e}}")


def download_blob(container_name, blob_name, local_file_path):
    """Download a blob to a local file."""
    try:
        blob_service_client = BlobServiceClient.from_connection_string(
            config.STORAGE_CONNECTION_STRING
        )
        blob_client = blob_service_client.get_blob_client(
            container=container_name, blob=blob_name
        )
        with open(local_file_path, "wb") as download_file:
            download_file.write(blob_client.download_blob().readall())
        print(f"Downloaded {{container_name}}/{{blob_name}} to {{local_file_path}}")
    except Exception as e:
        print(f"Error downloading blob: {{e}}")


def get_secret(secret_name):
    """Get a secret from Key Vault."""
    try:
        credential = DefaultAzureCredential()
        secret_client = SecretClient(
            vault_url=f"https://{{config.KEYVAULT_NAME}}.vault.azure.net/",
            credential=credential,
        )
        secret = secret_client.get_secret(secret_name)
        print(f"Retrieved secret '{{secret_name}}'")
        return secret.value
    except Exception as e:
        print(f"Error getting secret: {{e}}")
        return None


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    command = sys.argv[1]
    if command == "list":
        if len(sys.argv) < 3:
            print("Usage: python access-azure-resources.py list <container_name>")
            sys.exit(1)
        list_blobs(sys.argv[2])
    elif command == "upload":
        if len(sys.argv) < 4:
            print(
                "Usage: python access-azure-resources.py upload "
                "<container_name> <local_file_path> [blob_name]"
            )
            sys.exit(1)
        blob_name = sys.argv[4] if len(sys.argv) > 4 else None
        upload_blob(sys.argv[2], sys.argv[3], blob_name)
    elif command == "download":
        if len(sys.argv) < 5:
            print(
                "Usage: python access-azure-resources.py download "
                "<container_name> <blob_name> <local_file_path>"
            )
            sys.exit(1)
        download_blob(sys.argv[2], sys.argv[3], sys.argv[4])
    elif command == "secret":
        if len(sys.argv) < 3:
            print("Usage: python access-azure-resources.py secret <secret_name>")
            sys.exit(1)
        secret_value = get_secret(sys.argv[2])
        if secret_value:
            print(f"Secret value: {{secret_value}}")
    else:
        print(f"Unknown command: {{command}}")
        print(USAGE)
'''


def service_principal_exports(
    subscription_id: str, tenant_id: str, client_id: str, client_secret: str
) -> str:
    """Shell profile block exporting the service principal credentials."""
    return (
        "# Azure service principal credentials\n"
        f'export AZURE_SUBSCRIPTION_ID="{subscription_id}"\n'
        f'export AZURE_TENANT_ID="{tenant_id}"\n'
        f'export AZURE_CLIENT_ID="{client_id}"\n'
        f'export AZURE_CLIENT_SECRET="{client_secret}"\n'
    )
