from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator
from app.services.phone import format_phone_for_display


class ClientUpsert(BaseModel):
    """Cadastro/atualização de cliente pelo telefone."""
    business_id: UUID = Field(description="ID do estabelecimento")
    name: str = Field(min_length=1, description="Nome do cliente", examples=["Maria Souza"])
    phone: str = Field(min_length=1, description="Telefone em qualquer formato", examples=["(11) 99999-1111"])
    email: Optional[str] = Field(default=None, examples=["maria@example.com"])
    notes: Optional[str] = None

    @field_validator("name")
    @classmethod
    def limpar_nome(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Nome é obrigatório")
        return value


class ClientOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    business_id: UUID
    name: str
    phone: str
    normalized_phone: str
    email: Optional[str]
    notes: Optional[str]
    created_at: Optional[datetime] = None

    @computed_field
    @property
    def phone_display(self) -> str:
        return format_phone_for_display(self.normalized_phone or self.phone)


class ClientUpsertOut(BaseModel):
    client: ClientOut
    is_new: bool


class DeduplicationRequest(BaseModel):
    business_id: UUID


class DeduplicationOut(BaseModel):
    """Resumo da consolidação (chaves no formato consumido pelo painel)."""
    duplicatesFound: int
    duplicatesRemoved: int
    clientsConsolidated: int
