from dataclasses import dataclass, field
from typing import BinaryIO, List

from courier import MethodDelete, MethodGet, MethodPost, MethodPut
from courier.httpx import new_attachment, with_schema, with_status_code

from ..models import Pet, PetKind
from ..service import create_pet, delete_pet, find_pet, list_pets, update_pet


@dataclass
class ListPets(MethodGet):
    """List pets

    Returns every pet, optionally filtered by kind.
    """
    kind: PetKind = field(default=None, metadata={"in": "query", "name": "kind,omitempty"})
    size: int = field(default=10, metadata={"in": "query", "name": "size,omitempty"})

    def path(self):
        return ""

    def output(self, ctx) -> List[Pet]:
        return list_pets(self.kind, self.size)


@dataclass
class GetPet(MethodGet):
    """Get a pet by id"""
    pet_id: int = field(metadata={"in": "path", "name": "petID"})

    def path(self):
        return "/:petID"

    def output(self, ctx) -> Pet:
        return find_pet(self.pet_id)


@dataclass
class CreatePet(MethodPost):
    """Create a pet"""
    pet: Pet = field(metadata={"in": "body"})

    def output(self, ctx) -> Pet:
        """
        @err[PetExists][409000001][pet already exists]
        """
        return create_pet(self.pet)


@dataclass
class UpdatePet(MethodPut):
    """Replace a pet"""
    pet_id: int = field(metadata={"in": "path", "name": "petID"})
    pet: Pet = field(metadata={"in": "body"})

    def path(self):
        return "/:petID"

    def output(self, ctx) -> Pet:
        find_pet(self.pet_id)
        return update_pet(self.pet_id, self.pet)


@dataclass
class DeletePet(MethodDelete):
    """Delete a pet

    @deprecated
    """
    pet_id: int = field(metadata={"in": "path", "name": "petID"})

    def path(self):
        return "/:petID"

    def output(self, ctx) -> None:
        delete_pet(self.pet_id)


@dataclass
class DownloadPhoto(MethodGet):
    """Download the pet photo"""
    pet_id: int = field(metadata={"in": "path", "name": "petID"})

    def path(self):
        return "/:petID/photo"

    def output(self, ctx):
        find_pet(self.pet_id)
        return new_attachment(f"{self.pet_id}.png", "image/png")


@dataclass
class UploadPhoto(MethodPut):
    """Upload the pet photo"""
    pet_id: int = field(metadata={"in": "path", "name": "petID"})
    photo: BinaryIO = field(metadata={"in": "multipart", "name": "photo"})
    note: str = field(default="", metadata={"in": "multipart", "name": "note,omitempty"})

    def path(self):
        return "/:petID/photo"

    def output(self, ctx):
        pet = find_pet(self.pet_id)
        return with_status_code(202, with_schema(Pet, pet))
