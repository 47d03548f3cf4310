"""Missio SDK - variable resolution, secrets and OAuth2 for REST collections.

## Core Modules

### Variables (`missio.sdk.variables`)
Collection data model, layered variable merge, ``{{ name }}`` interpolation
and the unresolved-placeholder scan.

### Secrets (`missio.sdk.secrets`)
``secure:<uuid>`` values in a secret store and ``$secret.<provider>.<name>``
references resolved against vault backends.

### OAuth2 (`missio.sdk.oauth2`)
Token fetching, refresh and persistence for the client credentials, password
and authorization code flows.

## Quick Start

```python
from missio.sdk.secrets import InMemorySecretStore, SecureValueBridge
from missio.sdk.secrets.references import SecretReferenceResolver
from missio.sdk.variables.resolver import VariableResolver

store = InMemorySecretStore()
resolver = VariableResolver(SecureValueBridge(store), SecretReferenceResolver())
resolver.set_active_environment(collection.id, "dev")
variables = await resolver.resolve_variables(collection)
url = resolver.interpolate("{{baseUrl}}/users", variables)
```
"""
