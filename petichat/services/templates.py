from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.ext.asyncio import AsyncSession

from petichat.domain.models import Template
from petichat.persistence.repos import templates as templates_repo


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DefaultTemplate:
    name: str
    description: str
    category: str
    area: str
    sections: tuple[str, ...]
    is_popular: bool = False
    rito: str | None = None


def default_templates() -> tuple[DefaultTemplate, ...]:
    # A starter catalogue covering the practice areas lawyers draft for most often.
    return (
        DefaultTemplate(
            name="Abertura de Processo Administrativo",
            description="Requeira a instauração de procedimento para apuração de irregularidades",
            category="Administrativo",
            area="Direito Administrativo",
            sections=("qualificacao", "fatos", "direito", "pedidos"),
            is_popular=True,
        ),
        DefaultTemplate(
            name="Pedido de Informações",
            description="Solicite dados oficiais, resguardando o direito de acesso à informação",
            category="Administrativo",
            area="Direito Administrativo",
            sections=("qualificacao", "objeto", "fundamentacao", "pedido"),
        ),
        DefaultTemplate(
            name="Ação de Cobrança",
            description="Cobre valores devidos por inadimplemento contratual",
            category="Civel",
            area="Direito Civil",
            sections=("qualificacao", "fatos", "direito", "valor", "pedidos"),
            is_popular=True,
            rito="comum",
        ),
        DefaultTemplate(
            name="Ação de Indenização",
            description="Busque reparação por danos materiais e morais sofridos",
            category="Civel",
            area="Responsabilidade Civil",
            sections=("qualificacao", "fatos", "danos", "nexo", "quantum", "pedidos"),
            is_popular=True,
            rito="comum",
        ),
        DefaultTemplate(
            name="Apelação Cível",
            description="Recorra de sentença de primeiro grau ao tribunal",
            category="Civel",
            area="Direito Processual Civil",
            sections=("cabimento", "tempestividade", "razoes", "pedido"),
        ),
        DefaultTemplate(
            name="Ação de Reparação de Danos (CDC)",
            description="Busque reparação por vícios ou defeitos em produtos e serviços",
            category="Consumidor",
            area="Direito do Consumidor",
            sections=("qualificacao", "relacao_consumo", "vicio_defeito", "danos", "pedidos"),
            is_popular=True,
            rito="juizado_especial",
        ),
        DefaultTemplate(
            name="Reclamação Trabalhista",
            description="Pleiteie direitos trabalhistas violados pelo empregador",
            category="Trabalhista",
            area="Direito do Trabalho",
            sections=("qualificacao", "contrato", "verbas", "pedidos"),
            is_popular=True,
            rito="ordinario",
        ),
        DefaultTemplate(
            name="Habeas Corpus",
            description="Proteja a liberdade de locomoção contra ilegalidade ou abuso",
            category="Penal",
            area="Direito Penal",
            sections=("autoridade_coatora", "paciente", "constrangimento", "pedido"),
            is_popular=True,
        ),
        DefaultTemplate(
            name="Resposta à Acusação",
            description="Apresente defesa preliminar após recebimento da denúncia",
            category="Penal",
            area="Direito Processual Penal",
            sections=("qualificacao", "preliminares", "merito", "provas", "pedidos"),
        ),
        DefaultTemplate(
            name="Mandado de Segurança (Tributário)",
            description="Impugne ato de autoridade tributária que viole direito líquido e certo",
            category="Tributario",
            area="Direito Tributário",
            sections=("autoridade", "ato_coator", "direito_liquido", "pedido_liminar", "pedidos"),
        ),
    )


async def ensure_default_templates(session: AsyncSession) -> int:
    """Insert the starter catalogue; templates already present by name are left alone."""
    present = await templates_repo.existing_names(session)
    created = 0
    for item in default_templates():
        if item.name in present:
            continue
        templates_repo.add_template(
            session,
            name=item.name,
            description=item.description,
            category=item.category,
            area=item.area,
            rito=item.rito,
            is_popular=item.is_popular,
            structure_json=list(item.sections),
        )
        created += 1
    await session.commit()
    logger.info("templates_seeded created=%s existing=%s", created, len(present))
    return created


async def list_templates(session: AsyncSession, *, category: str | None = None) -> list[Template]:
    return await templates_repo.list_active(session, category=category)
